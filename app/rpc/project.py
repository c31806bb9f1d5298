"""Project procedures."""

from app.rpc.router import Router, ADMIN
from services.project_service import ProjectService
from validators import ID, STRING, INT, NUMBER, BOOL, OBJECT, list_of

router = Router('project')


def _service(ctx) -> ProjectService:
    return ProjectService(ctx.session, ctx.user, ctx.tasks, ctx.email_service)


@router.query('getForClient')
def get_for_client(ctx, input):
    return _service(ctx).get_for_client()


@router.query('getById', schema={'id': ID})
def get_by_id(ctx, input):
    return _service(ctx).get_by_id(input.get('id'))


@router.query('getAll', access=ADMIN)
def get_all(ctx, input):
    return _service(ctx).get_all()


@router.mutation('create', access=ADMIN, schema={
    'title': STRING, 'description': STRING, 'clientId': ID, 'budget': NUMBER,
    'startDate': STRING, 'endDate': STRING, 'deadline': STRING, 'milestones': list_of(OBJECT),
})
def create(ctx, input):
    return _service(ctx).create(input)


@router.mutation('update', access=ADMIN, schema={
    'id': ID, 'title': STRING, 'description': STRING, 'budget': NUMBER, 'status': STRING,
    'progress': INT, 'notifyClient': BOOL, 'message': STRING,
})
def update(ctx, input):
    return _service(ctx).update(input)


@router.mutation('updateProgress', access=ADMIN, schema={
    'id': ID, 'progress': INT, 'milestoneUpdates': list_of(OBJECT),
})
def update_progress(ctx, input):
    return _service(ctx).update_progress(input)


@router.mutation('delete', access=ADMIN, schema={'id': ID})
def delete(ctx, input):
    _service(ctx).delete(input.get('id'))
    return {'success': True}
