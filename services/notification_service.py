"""
Notification Service - Manages in-app notifications.

This service handles:
- Creating notifications for a user, for all admins, or in bulk
- Listing with pagination and unread counts
- Marking notifications as read and deleting them

Creation triggered as a side effect (payments, chat, invoices) is best
effort and returns None on failure; reads and user-initiated mutations
raise service errors.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any, Optional

from sqlalchemy import func

from database.models import Notification, User, NOTIFICATION_TYPES
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for managing notifications."""

    def __init__(self, session):
        self.session = session

    def create_notification(self, user_id: str, title: str, message: str,
                            notification_type: str = 'INFO',
                            entity_type: str = None,
                            entity_id: str = None,
                            action_url: str = None) -> Optional[Dict]:
        """
        Create a new notification.

        Args:
            user_id: User to notify
            title: Notification title
            message: Notification message
            notification_type: One of NOTIFICATION_TYPES
            entity_type: Related entity type (PROJECT, INVOICE, MESSAGE)
            entity_id: Related entity ID
            action_url: Link the client opens when clicking the notification

        Returns:
            Created notification dict or None on failure
        """
        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type if notification_type in NOTIFICATION_TYPES else 'INFO',
                entity_type=entity_type,
                entity_id=entity_id,
                action_url=action_url,
                is_read=False
            )

            self.session.add(notification)
            self.session.flush()

            logger.info(f"Created notification for {user_id}: {title}")
            return notification.to_dict()

        except Exception as e:
            logger.error(f"Error creating notification: {e}")
            return None

    def notify_admins(self, title: str, message: str, notification_type: str = 'INFO',
                      entity_type: str = None, entity_id: str = None,
                      action_url: str = None) -> int:
        """Create the same notification for every admin. Returns the count created."""
        admin_ids = [row.id for row in self.session.query(User.id).filter(User.role == 'ADMIN')]
        created = 0
        for admin_id in admin_ids:
            if self.create_notification(admin_id, title, message, notification_type,
                                        entity_type, entity_id, action_url):
                created += 1
        return created

    def bulk_create(self, user_ids: List[str], title: str, message: str,
                    notification_type: str = 'INFO', action_url: str = None) -> int:
        if not user_ids:
            raise ValidationError("At least one user is required")
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Invalid notification type: {notification_type}")
        existing = {row.id for row in self.session.query(User.id).filter(User.id.in_(user_ids))}
        created = 0
        for user_id in user_ids:
            if user_id in existing and self.create_notification(
                    user_id, title, message, notification_type, action_url=action_url):
                created += 1
        return created

    def get_notifications(self, user_id: str, unread_only: bool = False,
                          limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        """Get a page of notifications for a user."""
        query = self.session.query(Notification).filter(Notification.user_id == user_id)

        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        total = query.count()
        notifications = query.order_by(
            Notification.created_at.desc()
        ).offset(offset).limit(limit).all()

        return {
            'notifications': [n.to_dict() for n in notifications],
            'unreadCount': self.get_unread_count(user_id),
            'total': total,
            'hasMore': offset + len(notifications) < total
        }

    def get_unread_count(self, user_id: str) -> int:
        """Get count of unread notifications."""
        return self.session.query(func.count(Notification.id)).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).scalar() or 0

    def _get_own(self, notification_id: str, user_id: str) -> Notification:
        notification = self.session.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def mark_as_read(self, notification_id: str, user_id: str) -> Dict:
        """Mark a notification as read."""
        notification = self._get_own(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.session.flush()
        return notification.to_dict()

    def mark_all_as_read(self, user_id: str) -> int:
        """Mark all notifications as read for a user."""
        now = datetime.utcnow()
        count = 0
        for notification in self.session.query(Notification).filter(
                Notification.user_id == user_id,
                Notification.is_read == False):  # noqa: E712
            notification.is_read = True
            notification.read_at = now
            count += 1
        self.session.flush()
        return count

    def delete_notification(self, notification_id: str, user_id: str) -> bool:
        notification = self._get_own(notification_id, user_id)
        self.session.delete(notification)
        self.session.flush()
        return True

    def delete_all(self, user_id: str) -> int:
        count = self.session.query(Notification).filter(
            Notification.user_id == user_id
        ).delete(synchronize_session=False)
        self.session.flush()
        return count
