"""
Project Service - client projects and their lifecycle side effects.

Status and progress changes are compared against the stored values before
anything is logged or emailed, so repeating an update never produces a
second activity row or a second completion email.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any

from database.models import Project, Milestone, User, PROJECT_STATUSES, MILESTONE_STATUSES
from services.access import require_admin, require_user, get_project_for_user
from services.activity_logger import ActivityLogger
from services.email_hooks import schedule_hook
from services.errors import ValidationError, NotFoundError
from validators import validate_choice, parse_int, parse_datetime

logger = logging.getLogger(__name__)

COMPLETION_MESSAGE = "Great news! Your project has been completed."


class ProjectService:
    """Project reads for clients and admins, mutations for admins."""

    def __init__(self, session, user: Dict, tasks=None, email_service=None):
        self.session = session
        self.user = user
        self.tasks = tasks
        self.email_service = email_service

    def _activity(self) -> ActivityLogger:
        return ActivityLogger(self.session, self.user.get('id') if self.user else None)

    def _get(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        return project

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_for_client(self) -> List[Dict]:
        require_user(self.user)
        projects = self.session.query(Project).filter(
            Project.client_id == self.user['id']
        ).order_by(Project.updated_at.desc()).all()
        return [p.to_dict(include_milestones=True) for p in projects]

    def get_by_id(self, project_id: str) -> Dict:
        project = get_project_for_user(self.session, project_id, self.user)
        return project.to_dict(include_milestones=True, include_client=True)

    def get_all(self) -> List[Dict]:
        require_admin(self.user)
        projects = self.session.query(Project).order_by(Project.updated_at.desc()).all()
        result = []
        for project in projects:
            data = project.to_dict(include_milestones=True, include_client=True)
            data['messageCount'] = len(project.messages)
            result.append(data)
        return result

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError("Title is required")
        client_id = data.get('clientId')
        if not client_id or not self.session.query(User).filter(User.id == client_id).first():
            raise NotFoundError("Client not found")

        project = Project(
            client_id=client_id,
            title=title,
            description=data.get('description'),
            status=validate_choice(data.get('status', 'PLANNING'), PROJECT_STATUSES, 'status'),
            budget=data.get('budget'),
            start_date=parse_datetime(data.get('startDate'), 'startDate'),
            end_date=parse_datetime(data.get('endDate'), 'endDate'),
            deadline=parse_datetime(data.get('deadline'), 'deadline'),
        )
        self.session.add(project)
        self.session.flush()

        for index, milestone_title in enumerate(data.get('milestones') or []):
            self.session.add(Milestone(project_id=project.id, title=milestone_title, order=index))
        self.session.flush()

        self._activity().log(
            'PROJECT_CREATED',
            description=f"Project '{project.title}' was created",
            project_id=project.id,
            user_id=client_id
        )
        logger.info(f"Created project {project.id} for client {client_id}")
        return project.to_dict(include_milestones=True)

    def update(self, data: Dict[str, Any]) -> Dict:
        """
        Update project fields.

        A status change with ``notifyClient`` emails the client; a change to
        COMPLETED also records PROJECT_COMPLETED.
        """
        require_admin(self.user)
        project = self._get(data.get('id'))
        old_status, old_progress = project.status, project.progress

        if 'title' in data:
            title = (data['title'] or '').strip()
            if not title:
                raise ValidationError("Title is required")
            project.title = title
        if 'description' in data:
            project.description = data['description']
        if 'budget' in data:
            project.budget = data['budget']
        for field, column in (('startDate', 'start_date'), ('endDate', 'end_date'), ('deadline', 'deadline')):
            if field in data:
                setattr(project, column, parse_datetime(data[field], field))
        if data.get('progress') is not None:
            project.progress = parse_int(data['progress'], 'progress', min_value=0, max_value=100)
        if data.get('status') is not None:
            project.status = validate_choice(data['status'], PROJECT_STATUSES, 'status')
        self.session.flush()

        activity = self._activity()
        status_changed = project.status != old_status
        completed = ((status_changed and project.status == 'COMPLETED')
                     or (project.progress == 100 and old_progress < 100))

        if status_changed:
            activity.log_status_change(project, old_status, project.status)
        if project.progress != old_progress:
            activity.log_progress_change(project, old_progress, project.progress)
        if completed:
            activity.log_completion(project)

        if status_changed and data.get('notifyClient'):
            schedule_hook(self.tasks, self.email_service, 'on_project_status_changed',
                          project.id, old_status, data.get('message'))
        elif completed:
            schedule_hook(self.tasks, self.email_service, 'on_project_status_changed',
                          project.id, old_status, COMPLETION_MESSAGE, new_status='COMPLETED')

        return project.to_dict(include_milestones=True)

    def update_progress(self, data: Dict[str, Any]) -> Dict:
        """
        Set progress and optionally milestone statuses.

        Crossing to 100% from below records PROJECT_COMPLETED and emails the
        client once.
        """
        require_admin(self.user)
        project = self._get(data.get('id'))
        progress = parse_int(data.get('progress'), 'progress', min_value=0, max_value=100)
        if progress is None:
            raise ValidationError("progress is required")
        old_progress = project.progress

        activity = self._activity()
        milestones = {m.id: m for m in project.milestones}
        for update in data.get('milestoneUpdates') or []:
            milestone = milestones.get(update.get('id'))
            if not milestone:
                raise NotFoundError(f"Milestone {update.get('id')} not found")
            new_status = validate_choice(update.get('status'), MILESTONE_STATUSES, 'status')
            if milestone.status == new_status:
                continue
            previous = milestone.status
            apply_milestone_status(milestone, new_status)
            if new_status == 'COMPLETED':
                activity.log('MILESTONE_COMPLETED',
                             description=f"Milestone '{milestone.title}' completed in '{project.title}'",
                             project_id=project.id)
            else:
                activity.log('MILESTONE_UPDATED',
                             description=(f"Milestone '{milestone.title}' changed from "
                                          f"{previous} to {new_status} in '{project.title}'"),
                             project_id=project.id,
                             metadata={'old_status': previous, 'new_status': new_status})

        project.progress = progress
        self.session.flush()

        if progress != old_progress:
            activity.log_progress_change(project, old_progress, progress)
            if progress == 100 and old_progress < 100:
                activity.log_completion(project)
                schedule_hook(self.tasks, self.email_service, 'on_project_status_changed',
                              project.id, project.status, COMPLETION_MESSAGE, new_status='COMPLETED')

        return project.to_dict(include_milestones=True)

    def delete(self, project_id: str) -> bool:
        require_admin(self.user)
        project = self._get(project_id)
        self.session.delete(project)
        logger.info(f"Deleted project {project_id}")
        return True


def apply_milestone_status(milestone: Milestone, status: str):
    """Set a milestone status, keeping completed_at in step."""
    milestone.status = status
    if status == 'COMPLETED':
        milestone.completed_at = milestone.completed_at or datetime.utcnow()
    else:
        milestone.completed_at = None
