"""
Tests for the RPC router layer and the catalog procedures behind it
"""
import json

import pytest

from app.rpc import registry
from app.rpc.router import ADMIN, PUBLIC, Context, Router, RouterRegistry
from database.connection import get_db_session
from database.models import Notification, Service
from services.catalog_service import ServiceCatalog
from services.errors import AuthenticationError, NotFoundError, PermissionDenied, ServiceError, ValidationError
from validators import ID, INT, STRING, list_of


def make_registry():
    router = Router('demo')

    @router.query('echo', access=PUBLIC)
    def echo(ctx, input):
        return input

    @router.query('whoami')
    def whoami(ctx, input):
        return ctx.user['id']

    @router.mutation('reset', access=ADMIN)
    def reset(ctx, input):
        return 'done'

    @router.query('lookup', access=PUBLIC, schema={'id': ID, 'limit': INT, 'tags': list_of(STRING)})
    def lookup(ctx, input):
        return input

    return RouterRegistry([router])


CLIENT = {'id': 'c1', 'role': 'CLIENT'}
ADMIN_USER = {'id': 'a1', 'role': 'ADMIN'}


@pytest.mark.unit
class TestRouterRegistry:
    """Tests for procedure resolution and access"""

    def test_public_query_without_user(self):
        """Test public procedures need no session user"""
        assert make_registry().call('demo.echo', Context(None), {'a': 1}, 'GET') == {'a': 1}

    def test_missing_input_becomes_empty_dict(self):
        """Test handlers always receive a dict"""
        assert make_registry().call('demo.echo', Context(None), None) == {}

    def test_non_object_input_rejected(self):
        """Test list inputs are a validation error"""
        with pytest.raises(ValidationError, match='JSON object'):
            make_registry().call('demo.echo', Context(None), [1, 2])

    def test_protected_requires_user(self):
        """Test protected procedures reject anonymous callers"""
        with pytest.raises(AuthenticationError):
            make_registry().call('demo.whoami', Context(None))
        assert make_registry().call('demo.whoami', Context(None, CLIENT)) == 'c1'

    def test_admin_requires_admin_role(self):
        """Test admin procedures reject clients"""
        with pytest.raises(PermissionDenied):
            make_registry().call('demo.reset', Context(None, CLIENT))
        assert make_registry().call('demo.reset', Context(None, ADMIN_USER)) == 'done'

    def test_mutation_requires_post(self):
        """Test mutations called with GET are 405"""
        with pytest.raises(ServiceError) as exc_info:
            make_registry().call('demo.reset', Context(None, ADMIN_USER), {}, 'GET')
        assert exc_info.value.status_code == 405

    def test_declared_fields_are_coerced(self):
        """Test schema fields reach the handler checked and converted"""
        result = make_registry().call('demo.lookup', Context(None), {'id': ' p1 ', 'limit': '5', 'tags': ['a']})
        assert result == {'id': 'p1', 'limit': 5, 'tags': ['a']}

    @pytest.mark.parametrize('input', [
        {'id': {'x': 1}},
        {'limit': 'many'},
        {'tags': [1]},
        {'ownerId': 7},
        {'extra': {'nested': True}},
    ])
    def test_malformed_fields_rejected(self, input):
        """Test wrong shapes fail before the handler runs"""
        with pytest.raises(ValidationError):
            make_registry().call('demo.lookup', Context(None), input)

    @pytest.mark.parametrize('path', ['demo.missing', 'nope.echo', 'demo', ''])
    def test_unknown_paths(self, path):
        """Test unknown routers and procedures are 404"""
        with pytest.raises(NotFoundError):
            make_registry().call(path, Context(None))

    def test_registry_lists_every_domain_router(self):
        """Test the application registry exposes each router"""
        paths = registry.paths()
        for expected in ('project.getForClient', 'milestone.reorder', 'payment.getPaymentStats',
                         'chat.sendMessage', 'services.getAllVisible', 'notification.getAll',
                         'activity.getRecentForUser', 'preferences.get', 'admin.getAdminStats',
                         'search.global', 'files.getFilesByProject', 'portfolio.getFeatured',
                         'deadline.getUpcoming', 'admin.getAnalytics', 'search.suggestions',
                         'files.shareFileWithProject', 'chat.setTyping'):
            assert expected in paths


@pytest.mark.integration
class TestRpcRoutes:
    """Tests for /api/rpc over HTTP"""

    def test_get_query_with_input(self, client, client_user, make_project, login):
        """Test GET passes ?input= JSON to the handler"""
        project = make_project(client_user)
        login(client, client_user)
        response = client.get(f"/api/rpc/project.getById?input={json.dumps({'id': project.id})}")
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['data']['id'] == project.id

    def test_get_with_invalid_json(self, client):
        """Test malformed input is 400"""
        response = client.get('/api/rpc/services.getAllVisible?input={bad')
        assert response.status_code == 400

    def test_mutation_via_get(self, client, admin_user, login):
        """Test GET on a mutation is 405"""
        login(client, admin_user)
        assert client.get('/api/rpc/project.create').status_code == 405

    def test_unknown_procedure(self, client):
        """Test unknown paths are 404"""
        response = client.post('/api/rpc/project.explode', json={})
        assert response.status_code == 404
        assert 'project.explode' in response.get_json()['error']

    def test_anonymous_protected_call(self, client):
        """Test protected procedures answer 401 to anonymous callers"""
        assert client.get('/api/rpc/project.getForClient').status_code == 401

    def test_client_calling_admin_procedure(self, client, client_user, login):
        """Test clients get 403 on admin procedures"""
        login(client, client_user)
        assert client.get('/api/rpc/project.getAll').status_code == 403

    def test_non_object_body(self, client, admin_user, login):
        """Test a JSON list body is 400"""
        login(client, admin_user)
        response = client.post('/api/rpc/services.create', json=['title'])
        assert response.status_code == 400

    def test_object_id_is_bad_request(self, client, client_user, login):
        """Test an object where a record id belongs is 400, not a database error"""
        login(client, client_user)
        response = client.post('/api/rpc/project.getById', json={'id': {'x': 1}})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'id must be a string'


@pytest.mark.integration
class TestRpcBatch:
    """Tests for batched calls"""

    def test_batch_failure_rolls_back_only_itself(self, client, admin_user, login):
        """Test a failing call is reported in place and others commit"""
        login(client, admin_user)
        response = client.post('/api/rpc', json=[
            {'path': 'services.create', 'input': {'title': 'Web Design', 'description': 'Sites'}},
            {'path': 'services.create', 'input': {'title': 'No description'}},
            {'path': 'services.getAllVisible'},
            {'input': {}},
        ])
        assert response.status_code == 200
        results = response.get_json()
        assert results[0]['success'] is True
        assert results[1] == {'success': False, 'error': 'description is required', 'status': 400}
        assert [s['title'] for s in results[2]['data']] == ['Web Design']
        assert results[3]['status'] == 400

        with get_db_session() as db:
            assert db.query(Service).count() == 1

    def test_batch_invalid_input_after_commit(self, client, admin_user, client_user, login):
        """Test a malformed id fails in place after an earlier call committed"""
        login(client, admin_user)
        response = client.post('/api/rpc', json=[
            {'path': 'notification.create',
             'input': {'userId': client_user.id, 'title': 'Hello', 'message': 'Welcome aboard'}},
            {'path': 'project.getById', 'input': {'id': {'x': 1}}},
        ])
        assert response.status_code == 200
        results = response.get_json()
        assert results[0]['success'] is True
        assert results[1]['status'] == 400

        with get_db_session() as db:
            assert db.query(Notification).filter(Notification.user_id == client_user.id).count() == 1

    def test_batch_unexpected_error_reported_in_place(self, client, admin_user, client_user, login, monkeypatch):
        """Test a crashing call becomes a sanitized 500 entry and the others still commit"""
        def explode(self):
            raise RuntimeError('connection pool exhausted')

        monkeypatch.setattr(ServiceCatalog, 'get_all_visible', explode)
        login(client, admin_user)
        response = client.post('/api/rpc', json=[
            {'path': 'notification.create',
             'input': {'userId': client_user.id, 'title': 'Hello', 'message': 'Welcome aboard'}},
            {'path': 'services.getAllVisible'},
            {'path': 'notification.getUnreadCount'},
        ])
        assert response.status_code == 200
        results = response.get_json()
        assert results[0]['success'] is True
        assert results[1] == {'success': False, 'error': 'Internal Server Error', 'status': 500}
        assert 'connection pool' not in json.dumps(results)
        assert results[2]['success'] is True

        with get_db_session() as db:
            assert db.query(Notification).filter(Notification.user_id == client_user.id).count() == 1

    def test_batch_access_checked_per_call(self, client, client_user, login):
        """Test an admin call in a client batch fails alone"""
        login(client, client_user)
        results = client.post('/api/rpc', json=[
            {'path': 'services.getAll'},
            {'path': 'services.getAllVisible'},
        ]).get_json()
        assert results[0]['status'] == 403
        assert results[1]['success'] is True

    def test_batch_limits(self, client):
        """Test empty and oversized batches are rejected"""
        assert client.post('/api/rpc', json=[]).status_code == 400
        calls = [{'path': 'services.getAllVisible'}] * 21
        assert client.post('/api/rpc', json=calls).status_code == 400


@pytest.mark.integration
class TestCatalogProcedures:
    """Tests for the services and portfolio catalogs"""

    def test_service_visibility_and_order(self, client, admin_user, login):
        """Test hidden services are excluded and order is respected"""
        login(client, admin_user)
        first = client.post('/api/rpc/services.create',
                            json={'title': 'SEO', 'description': 'Search', 'order': 2}).get_json()['data']
        client.post('/api/rpc/services.create', json={'title': 'Branding', 'description': 'Logos', 'order': 1})
        client.post('/api/rpc/services.toggleVisibility', json={'id': first['id']})

        visible = client.get('/api/rpc/services.getAllVisible').get_json()['data']
        assert [s['title'] for s in visible] == ['Branding']
        everything = client.get('/api/rpc/services.getAll').get_json()['data']
        assert len(everything) == 2

    def test_service_update_order_must_be_positive(self, client, admin_user, login):
        """Test order updates below 1 are rejected"""
        login(client, admin_user)
        service = client.post('/api/rpc/services.create',
                              json={'title': 'SEO', 'description': 'Search'}).get_json()['data']
        response = client.post('/api/rpc/services.updateOrder', json={'id': service['id'], 'order': 0})
        assert response.status_code == 400

    def test_featured_portfolio_limit(self, client, admin_user, login):
        """Test at most three featured items are returned"""
        login(client, admin_user)
        for n in range(4):
            response = client.post('/api/rpc/portfolio.create', json={
                'title': f"Site {n}", 'description': 'Build', 'category': 'web', 'featured': True
            })
            assert response.status_code == 200
        client.post('/api/rpc/portfolio.create', json={'title': 'App', 'description': 'Build', 'category': 'mobile'})

        assert len(client.get('/api/rpc/portfolio.getFeatured').get_json()['data']) == 3
        assert len(client.get('/api/rpc/portfolio.getAll').get_json()['data']) == 5
        mobile = client.get('/api/rpc/portfolio.getByCategory?input={"category": "mobile"}').get_json()['data']
        assert [i['title'] for i in mobile] == ['App']

    def test_portfolio_rejects_bad_url(self, client, admin_user, login):
        """Test project URLs are validated"""
        login(client, admin_user)
        response = client.post('/api/rpc/portfolio.create', json={
            'title': 'Site', 'description': 'Build', 'category': 'web', 'projectUrl': 'ftp://nope'
        })
        assert response.status_code == 400
        assert response.get_json()['error'].startswith('projectUrl:')
