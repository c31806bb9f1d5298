"""Email preference procedures."""

from app.rpc.router import Router, PUBLIC
from services.preferences_service import PreferencesService

router = Router('preferences')


@router.query('get')
def get(ctx, input):
    return PreferencesService(ctx.session, ctx.user).get()


@router.mutation('update')
def update(ctx, input):
    return PreferencesService(ctx.session, ctx.user).update(input)


@router.mutation('unsubscribeWithToken', access=PUBLIC)
def unsubscribe_with_token(ctx, input):
    return PreferencesService(ctx.session).unsubscribe_with_token(input.get('token'), input.get('type', 'all'))


@router.mutation('regenerateUnsubscribeToken')
def regenerate_unsubscribe_token(ctx, input):
    return PreferencesService(ctx.session, ctx.user).regenerate_unsubscribe_token()


@router.query('getEmailLogs')
def get_email_logs(ctx, input):
    return PreferencesService(ctx.session, ctx.user).get_email_logs(input.get('limit'), input.get('offset'))
