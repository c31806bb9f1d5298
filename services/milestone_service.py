"""
Milestone Service - ordered milestones within a project.
"""

import logging
from typing import Dict, List, Any

from database.models import Milestone, Project, MILESTONE_STATUSES
from services.access import require_admin, get_project_for_user
from services.activity_logger import ActivityLogger
from services.errors import ValidationError, NotFoundError
from services.project_service import apply_milestone_status
from validators import validate_choice, parse_int, parse_datetime

logger = logging.getLogger(__name__)


class MilestoneService:

    def __init__(self, session, user: Dict):
        self.session = session
        self.user = user

    def _get(self, milestone_id: str) -> Milestone:
        milestone = self.session.query(Milestone).filter(Milestone.id == milestone_id).first()
        if not milestone:
            raise NotFoundError("Milestone not found")
        return milestone

    def _log_status_change(self, milestone: Milestone, previous: str):
        activity = ActivityLogger(self.session, self.user['id'])
        project_title = milestone.project.title if milestone.project else ''
        if milestone.status == 'COMPLETED':
            activity.log('MILESTONE_COMPLETED',
                         description=f"Milestone '{milestone.title}' completed in '{project_title}'",
                         project_id=milestone.project_id)
        else:
            activity.log('MILESTONE_UPDATED',
                         description=(f"Milestone '{milestone.title}' changed from {previous} "
                                      f"to {milestone.status} in '{project_title}'"),
                         project_id=milestone.project_id,
                         metadata={'old_status': previous, 'new_status': milestone.status})

    def _set_status(self, milestone: Milestone, status: str):
        status = validate_choice(status, MILESTONE_STATUSES, 'status')
        previous = milestone.status
        if previous == status:
            return
        apply_milestone_status(milestone, status)
        self.session.flush()
        self._log_status_change(milestone, previous)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_by_project(self, project_id: str) -> List[Dict]:
        project = get_project_for_user(self.session, project_id, self.user)
        return [m.to_dict() for m in project.milestones]

    def get_stats(self, project_id: str) -> Dict[str, Any]:
        project = get_project_for_user(self.session, project_id, self.user)
        statuses = [m.status for m in project.milestones]
        total = len(statuses)
        completed = statuses.count('COMPLETED')
        return {
            'total': total,
            'completed': completed,
            'inProgress': statuses.count('IN_PROGRESS'),
            'pending': statuses.count('PENDING'),
            'completionRate': round(completed / total * 100) if total else 0,
        }

    # =========================================================================
    # MUTATIONS (admin)
    # =========================================================================

    def create(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError("Title is required")
        project_id = data.get('projectId')
        if not self.session.query(Project).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        milestone = Milestone(
            project_id=project_id,
            title=title,
            description=data.get('description'),
            order=parse_int(data.get('order'), 'order', default=0, min_value=0),
            due_date=parse_datetime(data.get('dueDate'), 'dueDate'),
        )
        apply_milestone_status(milestone, validate_choice(data.get('status', 'PENDING'),
                                                          MILESTONE_STATUSES, 'status'))
        self.session.add(milestone)
        self.session.flush()
        return milestone.to_dict()

    def update(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        milestone = self._get(data.get('id'))
        if 'title' in data:
            title = (data['title'] or '').strip()
            if not title:
                raise ValidationError("Title is required")
            milestone.title = title
        if 'description' in data:
            milestone.description = data['description']
        if 'order' in data:
            milestone.order = parse_int(data['order'], 'order', default=milestone.order, min_value=0)
        if 'dueDate' in data:
            milestone.due_date = parse_datetime(data['dueDate'], 'dueDate')
        if data.get('status'):
            self._set_status(milestone, data['status'])
        self.session.flush()
        return milestone.to_dict()

    def update_status(self, milestone_id: str, status: str) -> Dict:
        require_admin(self.user)
        milestone = self._get(milestone_id)
        self._set_status(milestone, status)
        return milestone.to_dict()

    def bulk_update_status(self, milestone_ids: List[str], status: str) -> Dict[str, int]:
        require_admin(self.user)
        validate_choice(status, MILESTONE_STATUSES, 'status')
        milestones = self.session.query(Milestone).filter(Milestone.id.in_(milestone_ids or [])).all()
        for milestone in milestones:
            self._set_status(milestone, status)
        return {'count': len(milestones)}

    def delete(self, milestone_id: str) -> bool:
        require_admin(self.user)
        self.session.delete(self._get(milestone_id))
        return True

    def reorder(self, project_id: str, milestone_ids: List[str]) -> Dict[str, bool]:
        """Set ``order`` to each id's position in the list."""
        require_admin(self.user)
        milestones = {
            m.id: m for m in self.session.query(Milestone).filter(Milestone.project_id == project_id)
        }
        for index, milestone_id in enumerate(milestone_ids or []):
            milestone = milestones.get(milestone_id)
            if not milestone:
                raise NotFoundError(f"Milestone {milestone_id} not found in project")
            milestone.order = index
        self.session.flush()
        return {'success': True}
