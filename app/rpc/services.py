"""Service catalog procedures (the agency's offerings)."""

from app.rpc.router import Router, ADMIN, PUBLIC
from services.catalog_service import ServiceCatalog

router = Router('services')


@router.query('getAllVisible', access=PUBLIC)
def get_all_visible(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).get_all_visible()


@router.query('getById', access=PUBLIC)
def get_by_id(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).get_by_id(input.get('id'))


@router.query('getAll', access=ADMIN)
def get_all(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).get_all()


@router.mutation('create', access=ADMIN)
def create(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).create(input)


@router.mutation('update', access=ADMIN)
def update(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).update(input)


@router.mutation('delete', access=ADMIN)
def delete(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).delete(input.get('id'))


@router.mutation('toggleVisibility', access=ADMIN)
def toggle_visibility(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).toggle_visibility(input.get('id'))


@router.mutation('updateOrder', access=ADMIN)
def update_order(ctx, input):
    return ServiceCatalog(ctx.session, ctx.user).update_order(input.get('id'), input.get('order'))
