"""
File Service - admin view over every stored file.

Files come from two tables: chat attachments and portfolio images. Rows are
deleted even when the storage delete fails; the failure is only logged.
Admins can also repost a file into another project's chat.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Any

from sqlalchemy import func, or_

from database.models import Attachment, Message, PortfolioImage, Project
from services.access import require_admin, get_project_for_user
from services.errors import NotFoundError, ServiceError, ValidationError
from validators import parse_int, validate_choice

logger = logging.getLogger(__name__)

FILE_SOURCES = ('chat', 'portfolio')
FILE_CATEGORIES = ('all', 'attachment', 'portfolio')
SORT_FIELDS = {
    'date': lambda f: f['uploadedAt'] or '',
    'name': lambda f: (f['fileName'] or '').lower(),
    'size': lambda f: f['size'],
    'type': lambda f: f['type'],
}
RECENT_WINDOW = timedelta(days=7)


def _attachment_file(attachment: Attachment) -> Dict[str, Any]:
    sender = attachment.message.sender
    project = attachment.message.project
    return {
        'id': attachment.id,
        'name': attachment.name,
        'fileName': attachment.name,
        'type': attachment.mime_type or 'application/octet-stream',
        'size': attachment.size or 0,
        'url': attachment.url,
        'key': attachment.key,
        'uploadedAt': attachment.created_at.isoformat() if attachment.created_at else None,
        'uploadedBy': {'id': sender.id, 'name': sender.name or sender.email, 'role': sender.role} if sender else None,
        'category': 'attachment',
        'project': {'id': project.id, 'title': project.title} if project else None,
        'messageId': attachment.message_id,
        'source': 'chat',
    }


def _image_file(image: PortfolioImage) -> Dict[str, Any]:
    user = image.user
    return {
        'id': image.id,
        'name': image.name,
        'fileName': image.file_name or image.name,
        'type': image.type or 'image/jpeg',
        'size': image.size or 0,
        'url': image.url,
        'key': image.key,
        'uploadedAt': image.created_at.isoformat() if image.created_at else None,
        'uploadedBy': {'id': user.id, 'name': user.name or user.email, 'role': user.role} if user else None,
        'category': 'portfolio',
        'project': None,
        'source': 'portfolio',
    }


class FileService:

    def __init__(self, session, user: Dict, storage=None):
        self.session = session
        self.user = user
        self.storage = storage

    def get_all_files(self, category: str = 'all', sort_by: str = 'date', sort_order: str = 'desc',
                      search: str = None, project_id: str = None, limit=50, offset=0) -> Dict[str, Any]:
        require_admin(self.user)
        category = validate_choice(category or 'all', FILE_CATEGORIES, 'category')
        sort_by = validate_choice(sort_by or 'date', tuple(SORT_FIELDS), 'sortBy')
        sort_order = validate_choice(sort_order or 'desc', ('asc', 'desc'), 'sortOrder')
        limit = parse_int(limit, 'limit', default=50, min_value=1, max_value=100)
        offset = parse_int(offset, 'offset', default=0, min_value=0)

        files = []
        if category in ('all', 'attachment'):
            query = self.session.query(Attachment)
            if search:
                query = query.filter(or_(Attachment.name.ilike(f"%{search}%"),
                                         Attachment.mime_type.ilike(f"%{search}%")))
            if project_id:
                query = query.join(Message).filter(Message.project_id == project_id)
            files += [_attachment_file(a) for a in query.all()]
        if category in ('all', 'portfolio') and not project_id:
            query = self.session.query(PortfolioImage)
            if search:
                query = query.filter(or_(PortfolioImage.name.ilike(f"%{search}%"),
                                         PortfolioImage.file_name.ilike(f"%{search}%")))
            files += [_image_file(i) for i in query.all()]

        files.sort(key=SORT_FIELDS[sort_by], reverse=(sort_order == 'desc'))
        page = files[offset:offset + limit]
        return {'files': page, 'total': len(files), 'hasMore': offset + len(page) < len(files)}

    def get_files_by_project(self, project_id: str, limit=20, offset=0) -> List[Dict[str, Any]]:
        get_project_for_user(self.session, project_id, self.user)
        limit = parse_int(limit, 'limit', default=20, min_value=1, max_value=50)
        offset = parse_int(offset, 'offset', default=0, min_value=0)
        attachments = self.session.query(Attachment).join(Message).filter(
            Message.project_id == project_id
        ).order_by(Attachment.created_at.desc()).offset(offset).limit(limit).all()
        return [_attachment_file(a) for a in attachments]

    def _delete_object(self, key: str):
        if not key or self.storage is None:
            return
        try:
            self.storage.delete(key)
        except ServiceError as e:
            logger.error(f"Storage delete failed for {key}: {e.message}")

    def delete_file(self, file_id: str, source: str) -> Dict[str, bool]:
        require_admin(self.user)
        source = validate_choice(source, FILE_SOURCES, 'source')
        model = Attachment if source == 'chat' else PortfolioImage
        row = self.session.query(model).filter(model.id == file_id).first()
        if not row:
            raise NotFoundError("File not found")
        self._delete_object(row.key)
        self.session.delete(row)
        self.session.flush()
        logger.info(f"Admin {self.user['id']} deleted {source} file {file_id}")
        return {'success': True}

    def bulk_delete(self, files: List[Dict[str, str]]) -> Dict[str, Any]:
        require_admin(self.user)
        if not isinstance(files, list):
            raise ValidationError("files must be a list")
        deleted, failed = [], []
        for item in files:
            file_id = item.get('fileId')
            try:
                self.delete_file(file_id, item.get('source'))
                deleted.append(file_id)
            except ServiceError as e:
                logger.warning(f"Bulk delete skipped {file_id}: {e.message}")
                failed.append(file_id)
        return {
            'success': True,
            'deletedFiles': deleted,
            'failedFiles': failed,
            'deletedCount': len(deleted),
            'failedCount': len(failed),
        }

    def get_file_statistics(self, now: datetime = None) -> Dict[str, Any]:
        require_admin(self.user)
        since = (now or datetime.utcnow()) - RECENT_WINDOW
        attachments, attachment_size = self.session.query(
            func.count(Attachment.id), func.sum(Attachment.size)).one()
        images, image_size = self.session.query(
            func.count(PortfolioImage.id), func.sum(PortfolioImage.size)).one()
        recent = (
            (self.session.query(func.count(Attachment.id)).filter(Attachment.created_at >= since).scalar() or 0)
            + (self.session.query(func.count(PortfolioImage.id)).filter(PortfolioImage.created_at >= since).scalar() or 0)
        )
        return {
            'totalFiles': attachments + images,
            'totalSize': (attachment_size or 0) + (image_size or 0),
            'recentFiles': recent,
            'breakdown': {'attachments': attachments, 'portfolio': images},
            'sizeBreakdown': {'attachments': attachment_size or 0, 'portfolio': image_size or 0},
        }

    def share_file_with_project(self, file_id: str, source: str, target_project_id: str,
                                message: str = None) -> Dict[str, Any]:
        """
        Post an existing file into another project's chat.

        The new attachment points at the same URL but carries no storage key,
        so deleting either copy never removes the other's object.
        """
        require_admin(self.user)
        source = validate_choice(source, FILE_SOURCES, 'source')
        project = self.session.query(Project).filter(Project.id == target_project_id).first()
        if not project:
            raise NotFoundError("Target project not found")

        model = Attachment if source == 'chat' else PortfolioImage
        row = self.session.query(model).filter(model.id == file_id).first()
        if not row:
            raise NotFoundError("File not found")

        if source == 'chat':
            name, mime_type = row.name, row.mime_type
            origin = f"from project: {row.message.project.title}"
        else:
            name, mime_type = row.file_name or row.name, row.type
            origin = 'from portfolio'

        shared = Message(
            project_id=project.id,
            sender_id=self.user['id'],
            receiver_id=project.client_id,
            content=(message or '').strip() or f"Shared file: {name} ({origin})"
        )
        shared.attachments.append(Attachment(name=name, url=row.url, size=row.size or 0, mime_type=mime_type))
        self.session.add(shared)
        self.session.flush()
        logger.info(f"Admin {self.user['id']} shared {source} file {file_id} into project {project.id}")
        return {'success': True, 'message': 'File shared successfully', 'messageId': shared.id}
