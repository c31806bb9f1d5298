"""
Password reset tokens.

A reset token is 32 random bytes (64 hex characters), valid for one hour
and usable once. Expiry is checked before the used flag, so a stale token
always reports "expired".
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from auth import safe_generate_password_hash
from database.models import User, PasswordResetToken
from services.email_hooks import log_email
from services.errors import ValidationError, NotFoundError
from validators import validate_password, MIN_RESET_PASSWORD_LENGTH

logger = logging.getLogger(__name__)

TOKEN_TTL = timedelta(hours=1)
RESET_SUBJECT = "Reset your WMX Services password"


class PasswordResetService:

    def __init__(self, session, email_service=None):
        self.session = session
        self.email_service = email_service

    def request_reset(self, email: str) -> Optional[PasswordResetToken]:
        """
        Store a token and email the reset link when the user exists.

        Returns the token row (None for unknown emails); callers answer the
        same way in both cases so accounts cannot be enumerated.
        """
        if not email:
            raise ValidationError("Email is required")

        user = self.session.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            logger.info("Password reset requested for unknown email")
            return None

        reset_token = PasswordResetToken(
            user_id=user.id,
            token=secrets.token_hex(32),
            expires_at=datetime.utcnow() + TOKEN_TTL,
            used=False
        )
        self.session.add(reset_token)
        self.session.flush()

        result = self.email_service.send_password_reset(user.email, user.name, reset_token.token)
        log_email(self.session, user.email, 'PASSWORD_RESET', RESET_SUBJECT, result, user.id)
        return reset_token

    def _check_token(self, token: str) -> PasswordResetToken:
        if not token:
            raise ValidationError("Token is required")
        reset_token = self.session.query(PasswordResetToken).filter(
            PasswordResetToken.token == token
        ).first()
        if not reset_token:
            raise ValidationError("Invalid reset token")
        if reset_token.expires_at < datetime.utcnow():
            raise ValidationError("Reset token has expired")
        if reset_token.used:
            raise ValidationError("Reset token has already been used")
        return reset_token

    def validate_token(self, token: str) -> Dict[str, Any]:
        reset_token = self._check_token(token)
        return {'valid': True, 'email': reset_token.user.email}

    def reset_password(self, token: str, password: str) -> User:
        if not token or not password:
            raise ValidationError("Token and password are required")
        is_valid, error = validate_password(password, MIN_RESET_PASSWORD_LENGTH)
        if not is_valid:
            raise ValidationError(error)

        reset_token = self._check_token(token)
        user = reset_token.user
        if not user:
            raise NotFoundError("User not found")

        user.password_hash = safe_generate_password_hash(password)
        if not user.email_verified:
            user.email_verified = datetime.utcnow()
        reset_token.used = True
        self.session.flush()

        log_email(self.session, user.email, 'PASSWORD_RESET', "Password changed",
                  {'success': True}, user.id)
        logger.info(f"Password reset for user {user.id}")
        return user
