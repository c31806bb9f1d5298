"""
Tests for signup verification, password reset and user repository rules
"""
from datetime import datetime, timedelta

import pytest

from database.connection import get_db_session
from database.models import EmailVerification, PasswordResetToken, User
from services.errors import (
    ConflictError, GoneError, NotFoundError, PermissionDenied,
    TooManyAttemptsError, ValidationError
)
from services.password_reset_service import PasswordResetService
from services.users_repository import UsersRepository
from services.verification_service import MAX_ATTEMPTS, VerificationService, generate_code


def signup(email_service, email='signup@example.com'):
    with get_db_session() as db:
        return VerificationService(db, email_service).signup('Sign Up', email, 'password123')


def current_code(user_id):
    with get_db_session() as db:
        return db.query(EmailVerification).filter(EmailVerification.user_id == user_id).first().code


def wrong_code_for(code):
    return '999999' if code != '999999' else '888888'


@pytest.mark.unit
class TestGenerateCode:

    def test_code_is_six_digits_without_leading_zero(self):
        """Test codes are 6 digits and never start with 0"""
        for _ in range(200):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != '0'


@pytest.mark.integration
class TestVerificationService:
    """Tests for code verification rules"""

    def test_signup_creates_inactive_client(self, app, email_service):
        """Test signup stores an inactive CLIENT"""
        result = signup(email_service)
        with get_db_session() as db:
            user = db.query(User).filter(User.id == result['userId']).first()
            assert user.is_active is False
            assert user.role == 'CLIENT'
            assert user.email_verified is None

    def test_signup_replaces_unverified_account(self, app, email_service):
        """Test a second signup for an unverified email replaces the first"""
        first = signup(email_service)
        second = signup(email_service)
        assert first['userId'] != second['userId']
        with get_db_session() as db:
            assert db.query(User).filter(User.email == 'signup@example.com').count() == 1

    def test_verify_succeeds_only_once(self, app, email_service):
        """Test reusing a correct code is a conflict"""
        result = signup(email_service)
        code = current_code(result['userId'])

        with get_db_session() as db:
            user = VerificationService(db, email_service).verify(result['userId'], code)
            assert user.is_active is True

        with pytest.raises(ConflictError):
            with get_db_session() as db:
                VerificationService(db, email_service).verify(result['userId'], code)

    def test_wrong_codes_are_counted_and_capped(self, app, email_service):
        """Test failed attempts persist and the fifth locks the code"""
        result = signup(email_service)
        code = current_code(result['userId'])
        wrong = wrong_code_for(code)

        for attempt in range(1, MAX_ATTEMPTS):
            with pytest.raises(ValidationError) as exc_info:
                with get_db_session() as db:
                    VerificationService(db, email_service).verify(result['userId'], wrong)
            assert exc_info.value.extra['attemptsRemaining'] == MAX_ATTEMPTS - attempt

        with pytest.raises(TooManyAttemptsError):
            with get_db_session() as db:
                VerificationService(db, email_service).verify(result['userId'], wrong)

        # even the right code is refused now
        with pytest.raises(TooManyAttemptsError):
            with get_db_session() as db:
                VerificationService(db, email_service).verify(result['userId'], code)

        with get_db_session() as db:
            record = db.query(EmailVerification).filter(
                EmailVerification.user_id == result['userId']).first()
            assert record.attempts == MAX_ATTEMPTS

    def test_expired_code(self, app, email_service):
        """Test an expired code returns 410"""
        result = signup(email_service)
        with get_db_session() as db:
            db.query(EmailVerification).filter(EmailVerification.user_id == result['userId']).update(
                {'expires_at': datetime.utcnow() - timedelta(seconds=1)})

        with pytest.raises(GoneError) as exc_info:
            with get_db_session() as db:
                VerificationService(db, email_service).verify(result['userId'], current_code(result['userId']))
        assert exc_info.value.status_code == 410

    def test_verify_without_request(self, app, email_service, client_user):
        """Test verifying a user with no code is 404"""
        with pytest.raises(NotFoundError):
            with get_db_session() as db:
                VerificationService(db, email_service).verify(client_user.id, '123456')

    def test_resend_replaces_old_codes(self, app, email_service):
        """Test resend leaves exactly one fresh code"""
        result = signup(email_service)
        with get_db_session() as db:
            VerificationService(db, email_service).resend(user_id=result['userId'])
        with get_db_session() as db:
            records = db.query(EmailVerification).filter(
                EmailVerification.user_id == result['userId']).all()
            assert len(records) == 1
            assert records[0].attempts == 0

    def test_resend_for_verified_user(self, app, email_service, client_user):
        """Test resend refuses verified accounts"""
        with pytest.raises(ConflictError):
            with get_db_session() as db:
                VerificationService(db, email_service).resend(email='client@example.com')


@pytest.mark.integration
class TestPasswordResetService:
    """Tests for reset token rules"""

    def issue(self, email_service, email='client@example.com'):
        with get_db_session() as db:
            token = PasswordResetService(db, email_service).request_reset(email)
            return token.token if token else None

    def test_unknown_email_returns_none(self, app, email_service, email_client):
        """Test no token and no email for unknown addresses"""
        assert self.issue(email_service, 'ghost@example.com') is None
        assert email_client.sent == []

    def test_token_format(self, app, email_service, client_user):
        """Test tokens are 64 hex characters"""
        token = self.issue(email_service)
        assert len(token) == 64
        int(token, 16)

    def test_expiry_checked_before_used(self, app, email_service, client_user):
        """Test a used and expired token reports expired"""
        token = self.issue(email_service)
        with get_db_session() as db:
            db.query(PasswordResetToken).filter(PasswordResetToken.token == token).update({
                'used': True, 'expires_at': datetime.utcnow() - timedelta(minutes=5)})

        with pytest.raises(ValidationError, match='Reset token has expired'):
            with get_db_session() as db:
                PasswordResetService(db).validate_token(token)

    def test_short_password_rejected(self, app, email_service, client_user):
        """Test reset passwords need 6 characters"""
        token = self.issue(email_service)
        with pytest.raises(ValidationError, match='at least 6'):
            with get_db_session() as db:
                PasswordResetService(db).reset_password(token, '12345')

    def test_reset_verifies_unverified_user(self, app, email_service, make_user):
        """Test a successful reset also marks the email verified"""
        user = make_user(email='unverified@example.com', is_active=True, email_verified=None)
        token = self.issue(email_service, 'unverified@example.com')
        with get_db_session() as db:
            PasswordResetService(db).reset_password(token, 'brand-new')
        with get_db_session() as db:
            assert db.query(User).filter(User.id == user.id).first().email_verified is not None


@pytest.mark.integration
class TestUsersRepository:
    """Tests for role changes and sign-in user creation"""

    def test_get_or_create_verified_user(self, app):
        """Test first sign in creates an active verified client"""
        with get_db_session() as db:
            user, created = UsersRepository(db).get_or_create_verified_user('Oauth@Example.com', name='OAuth')
            assert created is True
            assert user.email == 'oauth@example.com'
            assert user.is_active is True
        with get_db_session() as db:
            _, created = UsersRepository(db).get_or_create_verified_user('oauth@example.com')
            assert created is False

    def test_existing_inactive_user_is_activated(self, app, make_user):
        """Test a pending signup is activated by an OAuth sign in"""
        make_user(email='pending@example.com', is_active=False)
        with get_db_session() as db:
            user, created = UsersRepository(db).get_or_create_verified_user('pending@example.com')
            assert created is False
            assert user.is_active is True
            assert user.email_verified is not None

    def test_demote_self_denied(self, app, admin_user):
        """Test admins cannot demote themselves"""
        with pytest.raises(PermissionDenied):
            with get_db_session() as db:
                UsersRepository(db).demote_to_client(admin_user.id, admin_user.id)

    def test_last_admin_cannot_be_demoted(self, app, admin_user, client_user):
        """Test the last admin keeps the role"""
        with get_db_session() as db:
            UsersRepository(db).promote_to_admin(client_user.id)
        with get_db_session() as db:
            UsersRepository(db).demote_to_client(client_user.id, admin_user.id)
        with pytest.raises(ValidationError, match='last admin'):
            with get_db_session() as db:
                UsersRepository(db).demote_to_client(admin_user.id, client_user.id)
