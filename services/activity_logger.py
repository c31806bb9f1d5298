"""
Activity Logger Service - audit trail of project and account activity.

Every status change, progress update, payment and message is written here so
both admins and clients can see what happened on a project and when.
Writes are best effort: a failed insert is logged and never breaks the
operation that triggered it.
"""

import logging
from typing import Dict, Optional, List, Any
from datetime import datetime

from sqlalchemy import func

from database.models import ActivityLog

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = {
    # Project lifecycle
    'PROJECT_CREATED': 'Project was created',
    'PROJECT_UPDATED': 'Project was updated',
    'PROJECT_STATUS_CHANGED': 'Project status was changed',
    'PROJECT_PROGRESS_UPDATED': 'Project progress was updated',
    'PROJECT_COMPLETED': 'Project was completed',

    # Milestones
    'MILESTONE_COMPLETED': 'Milestone was completed',
    'MILESTONE_UPDATED': 'Milestone was updated',

    # Chat
    'MESSAGE_SENT': 'Message was sent',
    'MESSAGE_RECEIVED': 'Message was received',

    # Billing
    'PAYMENT_RECEIVED': 'Payment was received',
    'PAYMENT_SENT': 'Payment was sent',
    'INVOICE_CREATED': 'Invoice was created',
    'INVOICE_PAID': 'Invoice was paid',

    # Accounts
    'USER_REGISTERED': 'User registered',
    'USER_LOGIN': 'User logged in',
}


class ActivityLogger:
    """Service for writing and reading activity log rows."""

    def __init__(self, session, user_id: str = None):
        """
        Args:
            session: SQLAlchemy database session
            user_id: The acting user (None for system actions such as webhooks)
        """
        self.session = session
        self.user_id = user_id

    def log(self, activity_type: str, description: str = None, project_id: str = None,
            metadata: Dict = None, user_id: str = None) -> Optional[Dict]:
        """
        Write an activity row.

        Returns:
            The created entry as a dict, or None on failure
        """
        try:
            entry = ActivityLog(
                user_id=user_id or self.user_id,
                project_id=project_id,
                type=activity_type,
                description=description or ACTIVITY_TYPES.get(activity_type, activity_type),
                extra_data=metadata or {},
                created_at=datetime.utcnow()
            )
            self.session.add(entry)
            self.session.flush()

            logger.debug(f"Activity logged: {activity_type} project={project_id}")
            return entry.to_dict()

        except Exception as e:
            logger.error(f"Failed to log activity {activity_type}: {e}")
            return None

    def log_status_change(self, project, old_status: str, new_status: str) -> Optional[Dict]:
        return self.log(
            'PROJECT_STATUS_CHANGED',
            description=f"Project '{project.title}' status changed from {old_status} to {new_status}",
            project_id=project.id,
            metadata={'old_status': old_status, 'new_status': new_status}
        )

    def log_progress_change(self, project, old_progress: int, new_progress: int) -> Optional[Dict]:
        return self.log(
            'PROJECT_PROGRESS_UPDATED',
            description=f"Project '{project.title}' progress updated from {old_progress}% to {new_progress}%",
            project_id=project.id,
            metadata={'old_progress': old_progress, 'new_progress': new_progress}
        )

    def log_completion(self, project) -> Optional[Dict]:
        return self.log(
            'PROJECT_COMPLETED',
            description=f"Project '{project.title}' was completed",
            project_id=project.id
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_recent_for_user(self, user_id: str, limit: int = 10) -> List[Dict]:
        """Activity the user performed or that happened on their projects."""
        from database.models import Project

        project_ids = [p.id for p in self.session.query(Project.id).filter(Project.client_id == user_id)]
        query = self.session.query(ActivityLog)
        if project_ids:
            query = query.filter((ActivityLog.user_id == user_id) | (ActivityLog.project_id.in_(project_ids)))
        else:
            query = query.filter(ActivityLog.user_id == user_id)
        entries = query.order_by(ActivityLog.created_at.desc()).limit(limit).all()
        return [e.to_dict() for e in entries]

    def _filtered(self, user_id: str = None, project_id: str = None, activity_type: str = None):
        query = self.session.query(ActivityLog)
        if user_id:
            query = query.filter(ActivityLog.user_id == user_id)
        if project_id:
            query = query.filter(ActivityLog.project_id == project_id)
        if activity_type:
            query = query.filter(ActivityLog.type == activity_type)
        return query

    def get_all(self, user_id: str = None, project_id: str = None, activity_type: str = None,
                limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        query = self._filtered(user_id, project_id, activity_type)
        total = query.count()
        entries = query.order_by(ActivityLog.created_at.desc()).offset(offset).limit(limit).all()
        return {
            'activities': [e.to_dict() for e in entries],
            'total': total,
            'hasMore': offset + len(entries) < total
        }

    def get_count(self, user_id: str = None, project_id: str = None, activity_type: str = None) -> int:
        query = self._filtered(user_id, project_id, activity_type)
        return query.with_entities(func.count(ActivityLog.id)).scalar() or 0

    def get_for_project(self, project_id: str, limit: int = 50) -> List[Dict]:
        entries = self.session.query(ActivityLog).filter(
            ActivityLog.project_id == project_id
        ).order_by(ActivityLog.created_at.desc()).limit(limit).all()
        return [e.to_dict() for e in entries]
