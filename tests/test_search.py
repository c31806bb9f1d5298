"""
Tests for global search
"""
import pytest

from database.connection import get_db_session
from database.models import Message, PortfolioItem
from services.errors import AuthenticationError, PermissionDenied, ValidationError
from services.search_service import SearchService


@pytest.fixture
def catalog(client_user, admin_user, make_user, make_project, make_invoice):
    """Two clients' projects, a portfolio item, a message and an invoice that all match 'brand'"""
    own = make_project(client_user, title='Brand Refresh')
    other = make_project(make_user(email='brandon@example.com', name='Brandon'), title='Brand Guidelines')
    make_invoice(own, number='INV-0001', description='Brand work deposit')
    with get_db_session() as db:
        db.add(PortfolioItem(title='Coffee brand', description='Identity', category='branding'))
        db.add(Message(project_id=own.id, sender_id=client_user.id, content='Brand colours attached'))
    return own, other


def search(user, query, **kwargs):
    with get_db_session() as db:
        return SearchService(db, user).global_search(query, **kwargs)


@pytest.mark.integration
class TestGlobalSearch:
    """Tests for SearchService.global_search"""

    def test_client_results_are_restricted(self, app, client_user, as_user, catalog):
        """Test clients see their own projects and the portfolio only"""
        results = search(as_user(client_user), 'brand')
        assert set(results) == {'projects', 'portfolio'}
        assert [p['title'] for p in results['projects']] == ['Brand Refresh']
        assert [i['title'] for i in results['portfolio']] == ['Coffee brand']

    def test_admin_sees_every_group(self, app, admin_user, as_user, catalog):
        """Test admins search every group"""
        results = search(as_user(admin_user), 'brand')
        assert set(results) == {'projects', 'portfolio', 'messages', 'invoices', 'clients', 'files'}
        assert len(results['projects']) == 2
        assert results['messages'][0]['project']['title'] == 'Brand Refresh'
        assert results['invoices'][0]['number'] == 'INV-0001'
        assert [c['name'] for c in results['clients']] == ['Brandon']
        assert results['clients'][0]['projectCount'] == 1

    def test_client_asking_for_admin_group(self, app, client_user, as_user, catalog):
        """Test a client filtering to invoices gets nothing"""
        assert search(as_user(client_user), 'brand', search_type='invoices') == {}

    def test_single_group_uses_full_limit(self, app, admin_user, as_user, client_user, make_project):
        """Test 'all' caps each group at five while a single group honours the limit"""
        for n in range(7):
            make_project(client_user, title=f"Landing page {n}")
        admin = as_user(admin_user)
        assert len(search(admin, 'landing')['projects']) == 5
        assert len(search(admin, 'landing', search_type='projects', limit=7)['projects']) == 7

    def test_case_insensitive(self, app, admin_user, as_user, catalog):
        """Test matching ignores case"""
        assert len(search(as_user(admin_user), 'BRAND', search_type='projects')['projects']) == 2

    @pytest.mark.parametrize('query', ['', '   ', 'x' * 101])
    def test_query_length(self, app, admin_user, as_user, query):
        """Test empty and over-long queries are rejected"""
        with pytest.raises(ValidationError):
            search(as_user(admin_user), query)

    def test_unknown_type(self, app, admin_user, as_user):
        """Test search types are validated"""
        with pytest.raises(ValidationError):
            search(as_user(admin_user), 'brand', search_type='everything')

    def test_requires_user(self, app):
        """Test anonymous search is refused"""
        with pytest.raises(AuthenticationError):
            search(None, 'brand')

    def test_search_procedure(self, client, client_user, login, catalog):
        """Test search.global over RPC"""
        login(client, client_user)
        response = client.get('/api/rpc/search.global?input={"query": "refresh"}')
        assert response.status_code == 200
        assert [p['title'] for p in response.get_json()['data']['projects']] == ['Brand Refresh']


def run(user, method, *args, **kwargs):
    with get_db_session() as db:
        return getattr(SearchService(db, user), method)(*args, **kwargs)


@pytest.mark.integration
class TestFilteredSearch:
    """Tests for the per-entity searches and autocomplete"""

    def test_projects_paging(self, app, admin_user, as_user, client_user, make_project):
        """Test total and hasMore describe the rest of the result set"""
        for n in range(3):
            make_project(client_user, title=f"Landing page {n}")
        page = run(as_user(admin_user), 'search_projects', 'landing', limit=2)
        assert len(page['projects']) == 2
        assert (page['total'], page['hasMore']) == (3, True)
        last = run(as_user(admin_user), 'search_projects', 'landing', limit=2, offset=2)
        assert (len(last['projects']), last['hasMore']) == (1, False)
        assert last['projects'][0]['messageCount'] == 0

    def test_projects_restricted_for_clients(self, app, client_user, as_user, catalog):
        """Test a client's clientId filter cannot reach other clients"""
        _, other = catalog
        page = run(as_user(client_user), 'search_projects', 'brand', client_id=other.client_id)
        assert [p['title'] for p in page['projects']] == ['Brand Refresh']

    def test_projects_status_and_dates(self, app, admin_user, as_user, catalog):
        """Test status is validated and the date window applies to created_at"""
        admin = as_user(admin_user)
        assert run(admin, 'search_projects', status='COMPLETED')['total'] == 0
        assert run(admin, 'search_projects', date_to='2020-01-01')['total'] == 0
        with pytest.raises(ValidationError):
            run(admin, 'search_projects', status='ARCHIVED')

    def test_portfolio_matches_technologies(self, app, client_user, as_user):
        """Test technology tags are searchable and featured filters"""
        with get_db_session() as db:
            db.add(PortfolioItem(title='Shop', description='Storefront', category='web',
                                 technologies=['Django', 'Tailwind'], featured=True))
            db.add(PortfolioItem(title='Blog', description='Writing', category='web', technologies=['Hugo']))
        page = run(as_user(client_user), 'search_portfolio', 'tailwind')
        assert [i['title'] for i in page['portfolio']] == ['Shop']
        assert run(as_user(client_user), 'search_portfolio', category='web', featured=False)['total'] == 1

    def test_invoices_are_admin_only(self, app, admin_user, client_user, as_user, catalog):
        """Test clients are refused and admins can filter by amount"""
        with pytest.raises(PermissionDenied):
            run(as_user(client_user), 'search_invoices', 'INV')
        admin = as_user(admin_user)
        page = run(admin, 'search_invoices', 'deposit', amount_from=1000)
        assert page['invoices'][0]['client']['email'] == 'client@example.com'
        assert run(admin, 'search_invoices', amount_to=10)['total'] == 0

    def test_messages(self, app, client_user, make_user, as_user, catalog):
        """Test messages need a query and stay inside the caller's projects"""
        assert run(as_user(client_user), 'search_messages', 'colours')['total'] == 1
        stranger = as_user(make_user(email='stranger@example.com'))
        assert run(stranger, 'search_messages', 'colours')['total'] == 0
        with pytest.raises(ValidationError):
            run(as_user(client_user), 'search_messages', '  ')

    def test_suggestions(self, app, admin_user, client_user, as_user, catalog):
        """Test each suggestion type and that clients get no client names"""
        with get_db_session() as db:
            db.add(PortfolioItem(title='Shop', description='Storefront', technologies=['Branding kit', 'Figma']))
        admin = as_user(admin_user)
        assert {s['title'] for s in run(admin, 'suggestions', 'brand')} == {'Brand Guidelines', 'Brand Refresh'}
        assert [s['title'] for s in run(as_user(client_user), 'suggestions', 'brand')] == ['Brand Refresh']
        assert [s['title'] for s in run(admin, 'suggestions', 'brand', 'clients')] == ['Brandon']
        assert run(as_user(client_user), 'suggestions', 'brand', 'clients') == []
        assert run(admin, 'suggestions', 'brand', 'tags') == [{'id': 'Branding kit', 'title': 'Branding kit', 'type': 'tag'}]
        with pytest.raises(ValidationError):
            run(admin, 'suggestions', 'x' * 51)

    def test_search_procedures(self, client, client_user, login, catalog):
        """Test the search sub-procedures over RPC"""
        login(client, client_user)
        response = client.get('/api/rpc/search.projects?input={"query": "brand", "limit": "5"}')
        assert response.get_json()['data']['total'] == 1
        assert client.get('/api/rpc/search.invoices?input={"query": "INV"}').status_code == 403
        response = client.get('/api/rpc/search.suggestions?input={"query": "coffee", "type": "portfolio"}')
        assert [s['title'] for s in response.get_json()['data']] == ['Coffee brand']
