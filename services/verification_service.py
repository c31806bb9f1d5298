"""
Signup and email verification.

Credential signups create an inactive CLIENT user plus a six digit code
that expires after 10 minutes. The account is activated by posting the
code back; five wrong guesses lock the code until a new one is requested.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Any

from auth import safe_generate_password_hash, ROLE_CLIENT
from database.models import User, EmailVerification
from services.errors import (
    ServiceError, ValidationError, NotFoundError, ConflictError,
    GoneError, TooManyAttemptsError
)
from validators import validate_email, validate_password, MIN_SIGNUP_PASSWORD_LENGTH

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(minutes=10)
MAX_ATTEMPTS = 5


def generate_code() -> str:
    """Six digit numeric code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


class VerificationService:
    """Signup, code verification and code resend."""

    def __init__(self, session, email_service):
        self.session = session
        self.email_service = email_service

    def _issue_code(self, user: User) -> EmailVerification:
        verification = EmailVerification(
            user_id=user.id,
            code=generate_code(),
            expires_at=datetime.utcnow() + CODE_TTL,
            attempts=0,
            verified=False
        )
        self.session.add(verification)
        self.session.flush()
        return verification

    def _send_code(self, user: User, verification: EmailVerification):
        result = self.email_service.send_verification_code(
            user.email, user.name, verification.code,
            expires_minutes=int(CODE_TTL.total_seconds() // 60),
            skip_if_disabled=False
        )
        if not result.get('success'):
            logger.error(f"Verification email to {user.email} failed: {result.get('error')}")
            raise ServiceError("Failed to send verification email. Please try again.", status_code=500)
        logger.info(f"Verification code sent to {user.email}")

    def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        """
        Create an inactive user and email a verification code.

        An existing inactive account with the same email is replaced. If the
        email cannot be sent a 500 ServiceError is raised and the caller's
        transaction rolls back, so the new user does not survive.
        """
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")
        is_valid, error = validate_email(email)
        if not is_valid:
            raise ValidationError(error)
        is_valid, error = validate_password(password, MIN_SIGNUP_PASSWORD_LENGTH)
        if not is_valid:
            raise ValidationError(error)

        existing = self.session.query(User).filter(User.email == email).first()
        if existing:
            if existing.is_active:
                raise ConflictError("User with this email already exists")
            logger.info(f"Replacing unverified signup for {email}")
            self.session.delete(existing)
            self.session.flush()

        user = User(
            email=email,
            name=(name or '').strip() or email.split('@')[0],
            password_hash=safe_generate_password_hash(password),
            role=ROLE_CLIENT,
            is_active=False
        )
        self.session.add(user)
        self.session.flush()

        verification = self._issue_code(user)
        self._send_code(user, verification)

        return {'userId': user.id, 'email': user.email, 'requiresVerification': True}

    def verify(self, user_id: str, code: str) -> User:
        """
        Check a code and activate the user.

        Raises:
            ValidationError: missing input or wrong code (with attemptsRemaining)
            NotFoundError: no verification was ever issued for the user
            ConflictError: the user is already verified
            TooManyAttemptsError: five failed attempts recorded
            GoneError: the code expired
        """
        if not user_id or not code:
            raise ValidationError("User ID and verification code are required")

        records = self.session.query(EmailVerification).filter(
            EmailVerification.user_id == user_id
        ).order_by(EmailVerification.created_at.desc()).all()
        if not records:
            raise NotFoundError("No verification request found for this user")

        user = self.session.query(User).filter(User.id == user_id).first()
        if any(r.verified for r in records) or (user and user.is_active and user.email_verified):
            raise ConflictError("Email already verified")

        match = next((r for r in records if r.code == str(code).strip()), None)
        if match is None:
            latest = records[0]
            latest.attempts = (latest.attempts or 0) + 1
            # the failed attempt must survive the rollback the raise triggers
            self.session.commit()
            if latest.attempts >= MAX_ATTEMPTS:
                raise TooManyAttemptsError("Too many failed attempts. Please request a new code.")
            raise ValidationError(
                "Invalid verification code",
                attemptsRemaining=MAX_ATTEMPTS - latest.attempts
            )

        if match.attempts >= MAX_ATTEMPTS:
            raise TooManyAttemptsError("Too many failed attempts. Please request a new code.")
        if datetime.utcnow() > match.expires_at:
            raise GoneError("Verification code has expired. Please request a new one.")

        match.verified = True
        user.is_active = True
        user.email_verified = datetime.utcnow()
        self.session.flush()

        logger.info(f"Email verified for user {user.id}")
        return user

    def resend(self, user_id: str = None, email: str = None) -> Dict[str, Any]:
        if not user_id and not email:
            raise ValidationError("User ID or email is required")

        query = self.session.query(User)
        if user_id:
            user = query.filter(User.id == user_id).first()
        else:
            user = query.filter(User.email == email.strip().lower()).first()
        if not user:
            raise NotFoundError("User not found")
        if user.is_active and user.email_verified:
            raise ConflictError("Email already verified")

        self.session.query(EmailVerification).filter(
            EmailVerification.user_id == user.id
        ).delete(synchronize_session=False)

        verification = self._issue_code(user)
        self._send_code(user, verification)
        return {'userId': user.id}
