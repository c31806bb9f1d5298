"""
Upload Routes Blueprint

Server-side uploads (validated byte for byte), presigned browser uploads,
object deletion and chat attachments, all stored in the R2 bucket.
"""

from flask import Blueprint, request, jsonify
import logging

from auth import login_required
from app.utils.helpers import get_json_body, get_extension, get_current_user, get_client_ip
from database.connection import get_db_session
from database.models import PortfolioImage, Attachment, Message, User
from services.access import get_project_for_user, is_admin
from services.csrf import csrf
from services.errors import ServiceUnavailable, ValidationError, PermissionDenied
from services.rate_limiter import upload_limit
from services.security_monitor import SecurityEventType, ThreatLevel
from services.storage_service import build_object_key, build_chat_attachment_key
from validators import validate_file_upload, validate_upload_metadata

logger = logging.getLogger(__name__)

upload_bp = Blueprint('upload', __name__, url_prefix='/api/upload')
csrf.exempt(upload_bp)
upload_limit(upload_bp)

UPLOAD_TYPES = ('profile', 'portfolio', 'general')


def get_storage():
    storage = get_extension('storage')
    if storage is None:
        raise ServiceUnavailable("File storage is not configured")
    return storage


def read_uploaded_file(upload_type: str):
    """Validate the multipart 'file' field; returns (safe_name, content, content_type)."""
    file = request.files.get('file')
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    content = file.read()
    is_valid, error, safe_name = validate_file_upload(file.filename, content, file.mimetype, upload_type)
    if not is_valid:
        report_rejected_upload(file.filename, file.mimetype, error)
        raise ValidationError(error)
    return safe_name, content, file.mimetype


def report_rejected_upload(filename: str, content_type: str, reason: str):
    monitor = get_extension('security_monitor')
    if monitor is None:
        return
    user = get_current_user()
    monitor.record(
        SecurityEventType.MALICIOUS_FILE_UPLOAD, ThreatLevel.MEDIUM, get_client_ip(),
        'Rejected file upload',
        user_agent=request.user_agent.string,
        user_id=user['id'] if user else None,
        filename=filename,
        contentType=content_type,
        reason=reason
    )


@upload_bp.route('', methods=['POST'])
@login_required
def upload_file():
    """Multipart upload: file + type (profile|portfolio|general)"""
    upload_type = request.form.get('type', 'general')
    if upload_type not in UPLOAD_TYPES:
        raise ValidationError(f"Invalid upload type. Allowed: {', '.join(UPLOAD_TYPES)}")

    storage = get_storage()
    safe_name, content, content_type = read_uploaded_file(upload_type)
    user = get_current_user()

    key = build_object_key(upload_type, safe_name)
    stored = storage.upload(key, content, content_type, metadata={
        'original-name': safe_name,
        'uploaded-by': user['id'],
        'upload-type': upload_type,
    })
    logger.info(f"User {user['id']} uploaded {key}")
    return jsonify({
        'success': True,
        'url': stored['url'],
        'key': stored['key'],
        'fileName': safe_name,
        'size': stored['size'],
        'type': content_type,
    })


@upload_bp.route('/presigned', methods=['POST'])
@login_required
def presigned_upload():
    """Presigned PUT URL for a direct browser upload"""
    data = get_json_body()
    upload_type = data.get('uploadType', 'general')
    if upload_type not in UPLOAD_TYPES:
        raise ValidationError(f"Invalid upload type. Allowed: {', '.join(UPLOAD_TYPES)}")

    is_valid, error = validate_upload_metadata(
        data.get('fileName'), data.get('fileType'), data.get('fileSize'), upload_type
    )
    if not is_valid:
        raise ValidationError(error)

    storage = get_storage()
    key = build_object_key(upload_type, data['fileName'])
    return jsonify({'success': True, **storage.presign_upload(key, data['fileType'].lower())})


def user_owns_key(db, user, key: str) -> bool:
    """Keys a client may delete: their portfolio images, attachments they sent, their avatar."""
    if db.query(PortfolioImage).filter(PortfolioImage.key == key,
                                       PortfolioImage.user_id == user['id']).first():
        return True
    if db.query(Attachment).join(Message).filter(Attachment.key == key,
                                                 Message.sender_id == user['id']).first():
        return True
    owner = db.query(User).filter(User.id == user['id']).first()
    return bool(owner and owner.image and owner.image.endswith(f"/{key}"))


@upload_bp.route('', methods=['DELETE'])
@login_required
def delete_file():
    data = get_json_body()
    key = data.get('key') or request.args.get('key')
    if not key:
        raise ValidationError("File key is required")

    user = get_current_user()
    if not is_admin(user):
        with get_db_session() as db:
            if not user_owns_key(db, user, key):
                raise PermissionDenied("You do not have access to this file")

    get_storage().delete(key)
    return jsonify({'success': True, 'message': 'File deleted successfully'})


@upload_bp.route('/chat-attachment', methods=['POST'])
@login_required
def upload_chat_attachment():
    """Multipart upload: file + projectId; caller must have project access"""
    project_id = request.form.get('projectId')
    if not project_id:
        raise ValidationError("Project ID is required")

    with get_db_session() as db:
        get_project_for_user(db, project_id, get_current_user())

    storage = get_storage()
    safe_name, content, content_type = read_uploaded_file('attachment')

    key = build_chat_attachment_key(project_id, safe_name)
    stored = storage.upload(key, content, content_type, metadata={
        'original-name': safe_name,
        'project-id': project_id,
    })
    return jsonify({
        'success': True,
        'url': stored['url'],
        'key': stored['key'],
        'name': safe_name,
        'size': stored['size'],
        'type': content_type,
    })
