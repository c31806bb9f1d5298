"""
Chat Service - per-project conversation between the client and the agency.

Read state is tracked per user in MessageReadBy, so an admin reading a
thread does not mark it read for other admins.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any

from sqlalchemy import func

from database.models import Message, Attachment, MessageReadBy, Project, User
from services.access import require_admin, require_user, is_admin, get_project_for_user
from services.email_hooks import schedule_hook
from services.errors import ValidationError, NotFoundError, PermissionDenied
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    return content[:length] + ('...' if len(content) > length else '')


class ChatService:

    def __init__(self, session, user: Dict, tasks=None, email_service=None):
        self.session = session
        self.user = user
        self.tasks = tasks
        self.email_service = email_service

    def _touch(self):
        """Record that the acting user is online."""
        self.session.query(User).filter(User.id == self.user['id']).update(
            {User.last_active_at: datetime.utcnow()}, synchronize_session=False
        )

    def _get_message(self, message_id: str) -> Message:
        message = self.session.query(Message).filter(Message.id == message_id).first()
        if not message:
            raise NotFoundError("Message not found")
        return message

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_messages(self, project_id: str) -> List[Dict]:
        """Project messages oldest first; marks the others' messages read for the caller."""
        get_project_for_user(self.session, project_id, self.user)
        user_id = self.user['id']
        messages = self.session.query(Message).filter(
            Message.project_id == project_id
        ).order_by(Message.created_at.asc()).all()

        already_read = {
            row.message_id for row in self.session.query(MessageReadBy.message_id).filter(
                MessageReadBy.user_id == user_id,
                MessageReadBy.message_id.in_([m.id for m in messages])
            )
        } if messages else set()

        now = datetime.utcnow()
        for message in messages:
            if message.sender_id != user_id and message.id not in already_read:
                self.session.add(MessageReadBy(message_id=message.id, user_id=user_id, read_at=now))
                if message.receiver_id == user_id:
                    message.is_read = True
        self._touch()
        self.session.flush()

        result = []
        for message in messages:
            data = message.to_dict()
            data['readBy'] = [{'userId': rb.user_id, 'readAt': rb.read_at.isoformat()} for rb in message.read_by]
            result.append(data)
        return result

    def get_conversations(self) -> List[Dict]:
        """Admin inbox: projects with messages, busiest first."""
        require_admin(self.user)
        counts = dict(self.session.query(Message.project_id, func.count(Message.id)).group_by(Message.project_id))
        projects = self.session.query(Project).filter(Project.id.in_(list(counts))).all() if counts else []

        conversations = []
        for project in projects:
            last = self.session.query(Message).filter(
                Message.project_id == project.id
            ).order_by(Message.created_at.desc()).first()
            data = project.to_dict(include_client=True)
            data['messageCount'] = counts[project.id]
            data['lastMessage'] = last.to_dict() if last else None
            conversations.append(data)
        conversations.sort(key=lambda c: c['messageCount'], reverse=True)
        return conversations

    def get_unread_count(self) -> Dict[str, Any]:
        require_user(self.user)
        user_id = self.user['id']
        read_ids = self.session.query(MessageReadBy.message_id).filter(MessageReadBy.user_id == user_id)
        rows = self.session.query(Message.project_id, func.count(Message.id)).filter(
            Message.receiver_id == user_id,
            ~Message.id.in_(read_ids)
        ).group_by(Message.project_id).all()
        by_project = {project_id: count for project_id, count in rows}
        return {'total': sum(by_project.values()), 'byProject': by_project}

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _resolve_receiver(self, project: Project, receiver_id: str = None):
        if receiver_id:
            return receiver_id
        if is_admin(self.user):
            return project.client_id
        admin = self.session.query(User).filter(User.role == 'ADMIN').order_by(User.created_at).first()
        return admin.id if admin else None

    def send_message(self, data: Dict[str, Any]) -> Dict:
        """
        Post a message with optional attachments.

        The receiver gets a MESSAGE notification; the chat email is left to
        the email hook, which skips receivers active in the last 5 minutes.
        """
        content = (data.get('content') or '').strip()
        if not content:
            raise ValidationError("Message content is required")
        project = get_project_for_user(self.session, data.get('projectId'), self.user)
        receiver_id = self._resolve_receiver(project, data.get('receiverId'))

        message = Message(
            project_id=project.id,
            sender_id=self.user['id'],
            receiver_id=receiver_id,
            content=content
        )
        for item in data.get('attachments') or []:
            if not item.get('url') or not item.get('name'):
                raise ValidationError("Attachments need a name and url")
            message.attachments.append(Attachment(
                name=item['name'],
                url=item['url'],
                key=item.get('key'),
                size=item.get('size') or 0,
                mime_type=item.get('type') or item.get('mimeType')
            ))
        self.session.add(message)
        self._touch()
        self.session.flush()

        if receiver_id:
            receiver = self.session.query(User).filter(User.id == receiver_id).first()
            action_url = (f"/admin/chat?project={project.id}" if receiver and receiver.role == 'ADMIN'
                          else f"/client/projects/{project.id}")
            sender_name = self.user.get('name') or 'User'
            NotificationService(self.session).create_notification(
                receiver_id,
                f"New message from {sender_name}",
                f"Project: {project.title} - {preview(content)}",
                notification_type='MESSAGE',
                entity_type='PROJECT',
                entity_id=project.id,
                action_url=action_url
            )
            schedule_hook(self.tasks, self.email_service, 'on_new_chat_message', message.id)

        logger.info(f"Message {message.id} sent in project {project.id}")
        return message.to_dict()

    def edit_message(self, message_id: str, content: str) -> Dict:
        require_user(self.user)
        content = (content or '').strip()
        if not content:
            raise ValidationError("Message content is required")
        message = self.session.query(Message).filter(Message.id == message_id).first()
        if not message or message.sender_id != self.user['id']:
            raise PermissionDenied("You can only edit your own messages")
        message.content = content
        message.edited_at = datetime.utcnow()
        self.session.flush()
        return message.to_dict()

    def delete_message(self, message_id: str) -> Dict[str, bool]:
        require_user(self.user)
        message = self._get_message(message_id)
        if message.sender_id != self.user['id'] and not is_admin(self.user):
            raise PermissionDenied("You can only delete your own messages")
        self.session.delete(message)
        return {'success': True}

    def clear_project_chat(self, project_id: str) -> Dict[str, Any]:
        require_admin(self.user)
        project = self.session.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        messages = self.session.query(Message).filter(Message.project_id == project_id).all()
        for message in messages:
            self.session.delete(message)
        logger.info(f"Cleared {len(messages)} message(s) from project {project_id}")
        return {'success': True, 'deletedCount': len(messages), 'projectTitle': project.title}

    # =========================================================================
    # TYPING INDICATORS
    # =========================================================================

    def set_typing(self, tracker, project_id: str, is_typing: bool) -> Dict[str, bool]:
        get_project_for_user(self.session, project_id, self.user)
        tracker.set_typing(project_id, self.user, bool(is_typing))
        return {'success': True}

    def get_typing_users(self, tracker, project_id: str) -> List[Dict[str, Any]]:
        """Everyone else currently typing in the project."""
        get_project_for_user(self.session, project_id, self.user)
        return tracker.get_typing(project_id, exclude_user_id=self.user['id'])
