"""Activity feed procedures."""

from app.rpc.router import Router, ADMIN
from services.access import get_project_for_user
from services.activity_logger import ActivityLogger, ACTIVITY_TYPES
from validators import parse_int, validate_choice

router = Router('activity')


def _type_filter(input):
    activity_type = input.get('type')
    if activity_type:
        validate_choice(activity_type, tuple(ACTIVITY_TYPES), 'type')
    return activity_type


@router.query('getRecentForUser')
def get_recent_for_user(ctx, input):
    limit = parse_int(input.get('limit'), 'limit', default=10, min_value=1, max_value=50)
    return ActivityLogger(ctx.session).get_recent_for_user(ctx.user['id'], limit=limit)


@router.query('getAll', access=ADMIN)
def get_all(ctx, input):
    return ActivityLogger(ctx.session).get_all(
        user_id=input.get('userId'),
        project_id=input.get('projectId'),
        activity_type=_type_filter(input),
        limit=parse_int(input.get('limit'), 'limit', default=50, min_value=1, max_value=100),
        offset=parse_int(input.get('offset'), 'offset', default=0, min_value=0)
    )


@router.query('getCount', access=ADMIN)
def get_count(ctx, input):
    count = ActivityLogger(ctx.session).get_count(
        user_id=input.get('userId'),
        project_id=input.get('projectId'),
        activity_type=_type_filter(input)
    )
    return {'count': count}


@router.query('getForProject')
def get_for_project(ctx, input):
    project = get_project_for_user(ctx.session, input.get('projectId'), ctx.user)
    limit = parse_int(input.get('limit'), 'limit', default=50, min_value=1, max_value=100)
    return ActivityLogger(ctx.session).get_for_project(project.id, limit=limit)
