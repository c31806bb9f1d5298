"""
Database package for WMX Services.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    configure_database,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    User,
    EmailVerification,
    PasswordResetToken,
    MagicLinkToken,
    Project,
    Milestone,
    Invoice,
    Payment,
    Message,
    Attachment,
    MessageReadBy,
    PortfolioItem,
    PortfolioImage,
    Service,
    Notification,
    ActivityLog,
    EmailLog
)

__all__ = [
    # Connection
    'Base',
    'configure_database',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'User',
    'EmailVerification',
    'PasswordResetToken',
    'MagicLinkToken',
    'Project',
    'Milestone',
    'Invoice',
    'Payment',
    'Message',
    'Attachment',
    'MessageReadBy',
    'PortfolioItem',
    'PortfolioImage',
    'Service',
    'Notification',
    'ActivityLog',
    'EmailLog'
]
