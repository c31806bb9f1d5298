"""
Database seeding for WMX Services.
Creates or promotes the admin accounts listed in ADMIN_EMAILS.

Admins cannot sign up; everyone registers as a CLIENT and is promoted by an
existing admin. This seed bootstraps the first one.

Usage:
    ADMIN_EMAILS=owner@example.com ADMIN_PASSWORD=... python -m database.seed
"""

import logging
import os
from datetime import datetime

from werkzeug.security import generate_password_hash
from database.connection import get_db_session
from database.models import User

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_NAME = "Admin User"


def parse_admin_emails(value):
    """Comma separated list, lower-cased, blanks dropped."""
    return [email.strip().lower() for email in (value or '').split(',') if email.strip()]


def seed_admin(session, email, password=None):
    """Create an admin, or promote an existing user. Returns (user, created)."""
    user = session.query(User).filter(User.email == email).first()
    if user:
        if user.role != 'ADMIN':
            user.role = 'ADMIN'
            logger.info(f"Promoted existing user to admin: {email}")
        else:
            logger.info(f"Admin user already exists: {email}")
        return user, False

    user = User(
        email=email,
        name=DEFAULT_ADMIN_NAME,
        role='ADMIN',
        is_active=True,
        email_verified=datetime.utcnow(),
        password_hash=generate_password_hash(password, method='pbkdf2:sha256') if password else None
    )
    session.add(user)
    session.flush()
    logger.info(f"Created admin user: {email}")
    return user, True


def seed_database(emails=None, password=None):
    """
    Seed admin users from the arguments or the environment.

    Returns the number of accounts created.
    """
    emails = emails if emails is not None else parse_admin_emails(os.environ.get('ADMIN_EMAILS'))
    password = password or os.environ.get('ADMIN_PASSWORD')
    if not emails:
        logger.warning("ADMIN_EMAILS is empty, nothing to seed")
        return 0

    created = 0
    with get_db_session() as session:
        for email in emails:
            _, was_created = seed_admin(session, email, password)
            created += int(was_created)
    logger.info(f"Database seeding completed: {created} admin(s) created")
    return created


if __name__ == '__main__':
    from config import get_config
    from database.connection import configure_database, init_db

    logging.basicConfig(level=logging.INFO)
    configure_database(get_config().DATABASE_URL)
    init_db()
    seed_database()
