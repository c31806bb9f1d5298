"""Notification procedures. Users only ever touch their own rows."""

from app.rpc.router import Router, ADMIN
from database.models import User
from services.errors import NotFoundError, ServiceError
from services.notification_service import NotificationService
from validators import ID, STRING, INT, BOOL, parse_int, require_fields, list_of

MESSAGE_FIELDS = {'title': STRING, 'message': STRING, 'type': STRING, 'actionUrl': STRING}

router = Router('notification')


@router.query('getAll', schema={'unreadOnly': BOOL, 'limit': INT, 'offset': INT})
def get_all(ctx, input):
    result = NotificationService(ctx.session).get_notifications(
        ctx.user['id'],
        unread_only=bool(input.get('unreadOnly')),
        limit=parse_int(input.get('limit'), 'limit', default=20, min_value=1, max_value=100),
        offset=parse_int(input.get('offset'), 'offset', default=0, min_value=0)
    )
    result['items'] = result.pop('notifications')
    return result


@router.query('getUnreadCount')
def get_unread_count(ctx, input):
    return {'count': NotificationService(ctx.session).get_unread_count(ctx.user['id'])}


@router.mutation('markAsRead', schema={'id': ID})
def mark_as_read(ctx, input):
    return NotificationService(ctx.session).mark_as_read(input.get('id'), ctx.user['id'])


@router.mutation('markAllAsRead')
def mark_all_as_read(ctx, input):
    return {'count': NotificationService(ctx.session).mark_all_as_read(ctx.user['id'])}


@router.mutation('delete', schema={'id': ID})
def delete(ctx, input):
    NotificationService(ctx.session).delete_notification(input.get('id'), ctx.user['id'])
    return {'success': True}


@router.mutation('deleteAll')
def delete_all(ctx, input):
    return {'count': NotificationService(ctx.session).delete_all(ctx.user['id'])}


@router.mutation('create', access=ADMIN, schema=dict(
    MESSAGE_FIELDS, userId=ID, entityType=STRING, entityId=ID,
))
def create(ctx, input):
    require_fields(input, ['userId', 'title', 'message'])
    if not ctx.session.query(User).filter(User.id == input['userId']).first():
        raise NotFoundError("User not found")
    notification = NotificationService(ctx.session).create_notification(
        input['userId'],
        input['title'],
        input['message'],
        notification_type=input.get('type', 'INFO'),
        entity_type=input.get('entityType'),
        entity_id=input.get('entityId'),
        action_url=input.get('actionUrl')
    )
    if notification is None:
        raise ServiceError("Failed to create notification", status_code=500)
    return notification


@router.mutation('bulkCreate', access=ADMIN, schema=dict(MESSAGE_FIELDS, userIds=list_of(ID)))
def bulk_create(ctx, input):
    require_fields(input, ['title', 'message'])
    count = NotificationService(ctx.session).bulk_create(
        input.get('userIds') or [],
        input['title'],
        input['message'],
        notification_type=input.get('type', 'INFO'),
        action_url=input.get('actionUrl')
    )
    return {'count': count}
