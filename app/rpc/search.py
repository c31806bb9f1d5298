"""Search procedures: the global search, filtered per-entity searches and autocomplete."""

from app.rpc.router import Router
from services.search_service import SearchService
from validators import BOOL, ID, INT, NUMBER, STRING

router = Router('search')

QUERY_FIELDS = {'query': STRING, 'limit': INT, 'type': STRING}
PAGED_FIELDS = {'query': STRING, 'dateFrom': STRING, 'dateTo': STRING, 'limit': INT, 'offset': INT}


def _paging(input):
    return {
        'date_from': input.get('dateFrom'),
        'date_to': input.get('dateTo'),
        'limit': input.get('limit'),
        'offset': input.get('offset'),
    }


@router.query('global', schema=QUERY_FIELDS)
def global_search(ctx, input):
    return SearchService(ctx.session, ctx.user).global_search(
        input.get('query'), limit=input.get('limit', 10), search_type=input.get('type', 'all')
    )


@router.query('projects', schema=dict(PAGED_FIELDS, status=STRING, clientId=ID))
def search_projects(ctx, input):
    return SearchService(ctx.session, ctx.user).search_projects(
        input.get('query'), status=input.get('status'), client_id=input.get('clientId'), **_paging(input)
    )


@router.query('portfolio', schema=dict(PAGED_FIELDS, category=STRING, featured=BOOL))
def search_portfolio(ctx, input):
    return SearchService(ctx.session, ctx.user).search_portfolio(
        input.get('query'), category=input.get('category'), featured=input.get('featured'), **_paging(input)
    )


@router.query('invoices', schema=dict(
    PAGED_FIELDS, status=STRING, clientId=ID, amountFrom=NUMBER, amountTo=NUMBER,
))
def search_invoices(ctx, input):
    return SearchService(ctx.session, ctx.user).search_invoices(
        input.get('query'),
        status=input.get('status'),
        client_id=input.get('clientId'),
        amount_from=input.get('amountFrom'),
        amount_to=input.get('amountTo'),
        **_paging(input)
    )


@router.query('messages', schema=dict(PAGED_FIELDS, projectId=ID, senderId=ID))
def search_messages(ctx, input):
    return SearchService(ctx.session, ctx.user).search_messages(
        input.get('query'), project_id=input.get('projectId'), sender_id=input.get('senderId'), **_paging(input)
    )


@router.query('suggestions', schema=QUERY_FIELDS)
def suggestions(ctx, input):
    return SearchService(ctx.session, ctx.user).suggestions(
        input.get('query'), suggestion_type=input.get('type', 'projects'), limit=input.get('limit', 5)
    )
