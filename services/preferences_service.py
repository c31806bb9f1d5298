"""
Email preferences and unsubscribe handling.
"""

import logging
from typing import Dict, Any

from database.models import User, EmailLog
from services.access import require_user
from services.errors import NotFoundError
from services.users_repository import UsersRepository
from validators import validate_choice, parse_int

logger = logging.getLogger(__name__)

# request key -> User column
PREFERENCE_FIELDS = {
    'emailNotifications': 'email_notifications',
    'emailInvoices': 'email_invoices',
    'emailProjectUpdates': 'email_project_updates',
    'emailChatMessages': 'email_chat_messages',
    'emailMarketing': 'email_marketing',
}

UNSUBSCRIBE_SCOPES = {
    'all': tuple(PREFERENCE_FIELDS.values()),
    'marketing': ('email_marketing',),
    'notifications': ('email_notifications', 'email_chat_messages', 'email_project_updates'),
}


class PreferencesService:

    def __init__(self, session, user: Dict = None):
        self.session = session
        self.user = user

    def _current(self) -> User:
        require_user(self.user)
        user = self.session.query(User).filter(User.id == self.user['id']).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def get(self) -> Dict[str, Any]:
        user = self._current()
        data = user.preferences()
        data['unsubscribeToken'] = user.unsubscribe_token
        return data

    def update(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user = self._current()
        for key, column in PREFERENCE_FIELDS.items():
            if key in data and data[key] is not None:
                setattr(user, column, bool(data[key]))
        self.session.flush()
        return {'success': True, 'preferences': user.preferences()}

    def unsubscribe_with_token(self, token: str, scope: str = 'all') -> Dict[str, Any]:
        scope = validate_choice(scope or 'all', tuple(UNSUBSCRIBE_SCOPES), 'type')
        user = self.session.query(User).filter(User.unsubscribe_token == token).first() if token else None
        if not user:
            raise NotFoundError("Invalid unsubscribe token")

        for column in UNSUBSCRIBE_SCOPES[scope]:
            setattr(user, column, False)
        self.session.flush()
        logger.info(f"User {user.id} unsubscribed from {scope} emails")
        message = ("You have been unsubscribed from all emails" if scope == 'all'
                   else f"You have been unsubscribed from {scope} emails")
        return {'success': True, 'message': message}

    def regenerate_unsubscribe_token(self) -> Dict[str, Any]:
        user = self._current()
        token = UsersRepository(self.session).regenerate_unsubscribe_token(user)
        return {'success': True, 'unsubscribeToken': token}

    def get_email_logs(self, limit=20, offset=0) -> Dict[str, Any]:
        require_user(self.user)
        limit = parse_int(limit, 'limit', default=20, min_value=1, max_value=100)
        offset = parse_int(offset, 'offset', default=0, min_value=0)
        query = self.session.query(EmailLog).filter(EmailLog.user_id == self.user['id'])
        total = query.count()
        logs = query.order_by(EmailLog.sent_at.desc()).offset(offset).limit(limit).all()
        return {
            'logs': [entry.to_dict() for entry in logs],
            'total': total,
            'hasMore': offset + limit < total,
        }
