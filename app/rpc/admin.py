"""User administration procedures."""

from app.rpc.router import Router, ADMIN
from services.admin_service import AdminService
from validators import ID, OBJECT, STRING

router = Router('admin')


@router.query('getUsers', access=ADMIN, schema={'role': STRING, 'search': STRING})
def get_users(ctx, input):
    return AdminService(ctx.session, ctx.user).get_users(role=input.get('role'), search=input.get('search'))


@router.mutation('promoteToAdmin', access=ADMIN, schema={'userId': ID})
def promote_to_admin(ctx, input):
    return AdminService(ctx.session, ctx.user).promote_to_admin(input.get('userId'))


@router.mutation('demoteToClient', access=ADMIN, schema={'userId': ID})
def demote_to_client(ctx, input):
    return AdminService(ctx.session, ctx.user).demote_to_client(input.get('userId'))


@router.query('getAdminStats', access=ADMIN)
def get_admin_stats(ctx, input):
    return AdminService(ctx.session, ctx.user).get_admin_stats()


@router.query('getAnalytics', access=ADMIN, schema={'period': STRING, 'dateRange': OBJECT})
def get_analytics(ctx, input):
    return AdminService(ctx.session, ctx.user).get_analytics(
        period=input.get('period', '30d'), date_range=input.get('dateRange')
    )


@router.query('getProjectTimeline', access=ADMIN, schema={'projectId': ID, 'clientId': ID, 'dateRange': OBJECT})
def get_project_timeline(ctx, input):
    return AdminService(ctx.session, ctx.user).get_project_timeline(
        project_id=input.get('projectId'), client_id=input.get('clientId'), date_range=input.get('dateRange')
    )
