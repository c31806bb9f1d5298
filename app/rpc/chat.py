"""Project chat procedures."""

from app.rpc.router import Router, ADMIN
from services.chat_service import ChatService
from validators import BOOL, ID, STRING, OBJECT, list_of, required

router = Router('chat')


def _service(ctx) -> ChatService:
    return ChatService(ctx.session, ctx.user, ctx.tasks, ctx.email_service)


@router.query('getMessages', schema={'projectId': ID})
def get_messages(ctx, input):
    return _service(ctx).get_messages(input.get('projectId'))


@router.query('getConversations', access=ADMIN)
def get_conversations(ctx, input):
    return _service(ctx).get_conversations()


@router.query('getUnreadCount')
def get_unread_count(ctx, input):
    return _service(ctx).get_unread_count()


@router.mutation('sendMessage', schema={
    'projectId': ID, 'content': STRING, 'attachments': list_of(OBJECT),
})
def send_message(ctx, input):
    return _service(ctx).send_message(input)


@router.mutation('editMessage', schema={'messageId': ID, 'content': STRING})
def edit_message(ctx, input):
    return _service(ctx).edit_message(input.get('messageId'), input.get('content'))


@router.mutation('deleteMessage', schema={'messageId': ID})
def delete_message(ctx, input):
    return _service(ctx).delete_message(input.get('messageId'))


@router.mutation('clearProjectChat', access=ADMIN, schema={'projectId': ID})
def clear_project_chat(ctx, input):
    return _service(ctx).clear_project_chat(input.get('projectId'))


@router.mutation('setTyping', schema={'projectId': ID, 'isTyping': required(BOOL)})
def set_typing(ctx, input):
    return _service(ctx).set_typing(ctx.extensions['typing_tracker'], input.get('projectId'), input['isTyping'])


@router.query('getTypingUsers', schema={'projectId': ID})
def get_typing_users(ctx, input):
    return _service(ctx).get_typing_users(ctx.extensions['typing_tracker'], input.get('projectId'))
