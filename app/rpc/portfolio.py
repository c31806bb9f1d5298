"""Public portfolio procedures."""

from app.rpc.router import Router, ADMIN, PUBLIC
from services.catalog_service import PortfolioCatalog

router = Router('portfolio')


@router.query('getAll', access=PUBLIC)
def get_all(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).get_all()


@router.query('getFeatured', access=PUBLIC)
def get_featured(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).get_featured()


@router.query('getByCategory', access=PUBLIC)
def get_by_category(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).get_by_category(input.get('category'))


@router.query('getById', access=PUBLIC)
def get_by_id(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).get_by_id(input.get('id'))


@router.mutation('create', access=ADMIN)
def create(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).create(input)


@router.mutation('update', access=ADMIN)
def update(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).update(input)


@router.mutation('delete', access=ADMIN)
def delete(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).delete(input.get('id'))


@router.mutation('toggleFeatured', access=ADMIN)
def toggle_featured(ctx, input):
    return PortfolioCatalog(ctx.session, ctx.user).toggle_featured(input.get('id'))
