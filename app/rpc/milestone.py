"""Milestone procedures."""

from app.rpc.router import Router, ADMIN
from services.milestone_service import MilestoneService
from validators import ID, STRING, INT, list_of

MILESTONE_FIELDS = {
    'projectId': ID, 'title': STRING, 'description': STRING, 'dueDate': STRING, 'order': INT, 'status': STRING,
}

router = Router('milestone')


@router.query('getByProject', schema={'projectId': ID})
def get_by_project(ctx, input):
    return MilestoneService(ctx.session, ctx.user).get_by_project(input.get('projectId'))


@router.query('getStats', schema={'projectId': ID})
def get_stats(ctx, input):
    return MilestoneService(ctx.session, ctx.user).get_stats(input.get('projectId'))


@router.mutation('create', access=ADMIN, schema=MILESTONE_FIELDS)
def create(ctx, input):
    return MilestoneService(ctx.session, ctx.user).create(input)


@router.mutation('update', access=ADMIN, schema=dict(MILESTONE_FIELDS, id=ID))
def update(ctx, input):
    return MilestoneService(ctx.session, ctx.user).update(input)


@router.mutation('updateStatus', access=ADMIN, schema={'id': ID, 'status': STRING})
def update_status(ctx, input):
    return MilestoneService(ctx.session, ctx.user).update_status(input.get('id'), input.get('status'))


@router.mutation('bulkUpdateStatus', access=ADMIN, schema={'milestoneIds': list_of(ID), 'status': STRING})
def bulk_update_status(ctx, input):
    return MilestoneService(ctx.session, ctx.user).bulk_update_status(
        input.get('milestoneIds'), input.get('status')
    )


@router.mutation('delete', access=ADMIN, schema={'id': ID})
def delete(ctx, input):
    MilestoneService(ctx.session, ctx.user).delete(input.get('id'))
    return {'success': True}


@router.mutation('reorder', access=ADMIN, schema={'projectId': ID, 'milestoneIds': list_of(ID)})
def reorder(ctx, input):
    return MilestoneService(ctx.session, ctx.user).reorder(input.get('projectId'), input.get('milestoneIds'))
