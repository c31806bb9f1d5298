"""
Tests for email preferences and unsubscribe links
"""
import pytest

from database.connection import get_db_session
from database.models import EmailLog, User
from services.errors import AuthenticationError, NotFoundError, ValidationError
from services.preferences_service import PreferencesService


def reload(user):
    with get_db_session() as db:
        return db.query(User).filter(User.id == user.id).one()


@pytest.mark.integration
class TestPreferencesService:
    """Tests for PreferencesService"""

    def test_defaults(self, app, client_user, as_user):
        """Test marketing is off and everything else on"""
        with get_db_session() as db:
            prefs = PreferencesService(db, as_user(client_user)).get()
        assert prefs['emailNotifications'] is True
        assert prefs['emailInvoices'] is True
        assert prefs['emailMarketing'] is False
        assert len(prefs['unsubscribeToken']) == 32

    def test_partial_update(self, app, client_user, as_user):
        """Test only supplied keys change and None is ignored"""
        with get_db_session() as db:
            result = PreferencesService(db, as_user(client_user)).update(
                {'emailChatMessages': False, 'emailMarketing': None, 'bogus': True})
        assert result['preferences']['emailChatMessages'] is False
        assert result['preferences']['emailMarketing'] is False
        assert result['preferences']['emailInvoices'] is True

    def test_requires_user(self, app):
        """Test anonymous reads are refused"""
        with pytest.raises(AuthenticationError):
            with get_db_session() as db:
                PreferencesService(db).get()

    def test_unsubscribe_all(self, app, client_user):
        """Test the 'all' scope turns every category off"""
        with get_db_session() as db:
            result = PreferencesService(db).unsubscribe_with_token(client_user.unsubscribe_token)
        assert result['message'] == 'You have been unsubscribed from all emails'
        user = reload(client_user)
        assert not any(user.preferences().values())

    def test_unsubscribe_notifications_scope(self, app, client_user):
        """Test the notifications scope leaves invoice email on"""
        with get_db_session() as db:
            PreferencesService(db).unsubscribe_with_token(client_user.unsubscribe_token, 'notifications')
        prefs = reload(client_user).preferences()
        assert prefs['emailNotifications'] is False
        assert prefs['emailChatMessages'] is False
        assert prefs['emailProjectUpdates'] is False
        assert prefs['emailInvoices'] is True

    def test_unsubscribe_bad_token_or_scope(self, app, client_user):
        """Test unknown tokens are 404 and unknown scopes 400"""
        with get_db_session() as db:
            service = PreferencesService(db)
            with pytest.raises(NotFoundError):
                service.unsubscribe_with_token('nope')
            with pytest.raises(NotFoundError):
                service.unsubscribe_with_token(None)
            with pytest.raises(ValidationError):
                service.unsubscribe_with_token(client_user.unsubscribe_token, 'sms')

    def test_regenerate_invalidates_old_token(self, app, client_user, as_user):
        """Test the previous token stops working"""
        old = client_user.unsubscribe_token
        with get_db_session() as db:
            new = PreferencesService(db, as_user(client_user)).regenerate_unsubscribe_token()['unsubscribeToken']
        assert new != old
        with pytest.raises(NotFoundError):
            with get_db_session() as db:
                PreferencesService(db).unsubscribe_with_token(old)

    def test_email_logs_are_scoped(self, app, client_user, make_user, as_user):
        """Test users only see their own email log"""
        other = make_user(email='other@example.com')
        with get_db_session() as db:
            for n in range(3):
                db.add(EmailLog(user_id=client_user.id, email=client_user.email, type='WELCOME',
                                subject=f"Email {n}", status='SENT'))
            db.add(EmailLog(user_id=other.id, email=other.email, type='WELCOME', subject='Other', status='SENT'))
        with get_db_session() as db:
            logs = PreferencesService(db, as_user(client_user)).get_email_logs(limit=2)
        assert logs['total'] == 3
        assert len(logs['logs']) == 2
        assert logs['hasMore'] is True


@pytest.mark.integration
class TestPreferenceProcedures:
    """Tests for the preferences router"""

    def test_public_unsubscribe(self, client, client_user):
        """Test unsubscribeWithToken needs no session"""
        response = client.post('/api/rpc/preferences.unsubscribeWithToken',
                               json={'token': client_user.unsubscribe_token, 'type': 'marketing'})
        assert response.status_code == 200
        assert response.get_json()['data']['message'] == 'You have been unsubscribed from marketing emails'

    def test_get_requires_login(self, client):
        """Test preferences.get is protected"""
        assert client.get('/api/rpc/preferences.get').status_code == 401
