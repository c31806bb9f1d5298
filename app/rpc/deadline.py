"""Deadline procedures: what is due soon, what is late."""

from app.rpc.router import Router, ADMIN
from services.deadline_service import DeadlineService
from validators import ID, INT, STRING

router = Router('deadline')


@router.query('getUpcoming', schema={'limit': INT, 'daysAhead': INT})
def get_upcoming(ctx, input):
    return DeadlineService(ctx.session, ctx.user).get_upcoming(
        limit=input.get('limit'), days_ahead=input.get('daysAhead')
    )


@router.query('getOverdue')
def get_overdue(ctx, input):
    return DeadlineService(ctx.session, ctx.user).get_overdue()


@router.query('getStats')
def get_stats(ctx, input):
    return DeadlineService(ctx.session, ctx.user).get_stats()


@router.query('getAllDeadlines', access=ADMIN, schema={
    'limit': INT, 'userId': ID, 'type': STRING, 'urgency': STRING,
})
def get_all_deadlines(ctx, input):
    return DeadlineService(ctx.session, ctx.user).get_all_deadlines(
        limit=input.get('limit'),
        user_id=input.get('userId'),
        deadline_type=input.get('type'),
        urgency=input.get('urgency')
    )
