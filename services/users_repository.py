"""
Users Repository - Database access layer for user management.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import User, MagicLinkToken
from services.errors import ValidationError, NotFoundError, GoneError, PermissionDenied

logger = logging.getLogger(__name__)

MAGIC_LINK_TTL = timedelta(hours=24)


class UsersRepository:
    """Repository for user database operations."""

    def __init__(self, session: Session):
        self.session = session

    def list_users(self, role: str = None, search: str = None) -> List[Dict]:
        """List users, newest first."""
        query = self.session.query(User)
        if role:
            query = query.filter(User.role == role)
        if search:
            pattern = f"%{search}%"
            query = query.filter((User.name.ilike(pattern)) | (User.email.ilike(pattern)))
        users = query.order_by(User.created_at.desc()).all()
        return [u.to_dict() for u in users]

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return self.session.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (returns model for auth)."""
        return self.session.query(User).filter(User.email == (email or '').strip().lower()).first()

    def get_or_create_verified_user(self, email: str, name: str = None, image: str = None) -> Tuple[User, bool]:
        """
        Find or create the user behind an OAuth or magic-link sign in.

        The provider has already proven ownership of the email, so new users
        are active and verified CLIENTs.

        Returns:
            Tuple of (user, created)
        """
        user = self.get_user_by_email(email)
        if user:
            if not user.email_verified:
                user.email_verified = datetime.utcnow()
            if not user.is_active:
                user.is_active = True
            if image and not user.image:
                user.image = image
            self.session.flush()
            return user, False

        user = User(
            email=email.strip().lower(),
            name=name or email.split('@')[0],
            image=image,
            role='CLIENT',
            is_active=True,
            email_verified=datetime.utcnow()
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Created user on first sign in: {user.id}")
        return user, True

    # =========================================================================
    # ROLES
    # =========================================================================

    def count_admins(self) -> int:
        return self.session.query(func.count(User.id)).filter(User.role == 'ADMIN').scalar() or 0

    def promote_to_admin(self, user_id: str) -> Dict:
        user = self.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        user.role = 'ADMIN'
        self.session.flush()
        logger.info(f"Promoted user {user_id} to ADMIN")
        return user.to_dict()

    def demote_to_client(self, user_id: str, acting_user_id: str) -> Dict:
        if user_id == acting_user_id:
            raise PermissionDenied("You cannot demote yourself")
        user = self.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.role == 'ADMIN' and self.count_admins() <= 1:
            raise ValidationError("Cannot demote the last admin")
        user.role = 'CLIENT'
        self.session.flush()
        logger.info(f"Demoted user {user_id} to CLIENT")
        return user.to_dict()

    # =========================================================================
    # MAGIC LINKS
    # =========================================================================

    def create_magic_link(self, email: str) -> MagicLinkToken:
        token = MagicLinkToken(
            email=email.strip().lower(),
            token=secrets.token_urlsafe(32),
            expires_at=datetime.utcnow() + MAGIC_LINK_TTL,
            used=False
        )
        self.session.add(token)
        self.session.flush()
        return token

    def consume_magic_link(self, token: str) -> Tuple[User, bool]:
        """
        Use a magic-link token once and return (user, created).
        """
        if not token:
            raise ValidationError("Token is required")
        record = self.session.query(MagicLinkToken).filter(MagicLinkToken.token == token).first()
        if not record:
            raise ValidationError("Invalid sign-in link")
        if record.expires_at < datetime.utcnow():
            raise GoneError("Sign-in link has expired")
        if record.used:
            raise ValidationError("Sign-in link has already been used")
        record.used = True
        return self.get_or_create_verified_user(record.email)

    def regenerate_unsubscribe_token(self, user: User) -> str:
        user.unsubscribe_token = uuid.uuid4().hex
        self.session.flush()
        return user.unsubscribe_token
