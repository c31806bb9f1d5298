"""
Input Validation & Sanitization Utilities
Provides validation for API payloads, credentials and file uploads
"""
import re
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple
from dateutil import parser as date_parser, tz
from werkzeug.utils import secure_filename
import logging

from services.errors import ValidationError

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Maximum file sizes (in bytes) by upload type
UPLOAD_SIZE_LIMITS = {
    'profile': 5 * MB,
    'portfolio': 8 * MB,
    'attachment': 10 * MB,
    'general': 10 * MB,
}
MAX_FILE_SIZE = 10 * MB

# Declared MIME type -> allowed extensions
IMAGE_TYPES = {
    'image/jpeg': {'jpg', 'jpeg'},
    'image/png': {'png'},
    'image/gif': {'gif'},
    'image/webp': {'webp'},
}
DOCUMENT_TYPES = {
    'application/pdf': {'pdf'},
    'application/msword': {'doc'},
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': {'docx'},
    'application/vnd.ms-excel': {'xls'},
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': {'xlsx'},
    'text/plain': {'txt'},
    'text/csv': {'csv'},
}
ALLOWED_TYPES_BY_UPLOAD = {
    'profile': IMAGE_TYPES,
    'portfolio': IMAGE_TYPES,
    'attachment': {**IMAGE_TYPES, **DOCUMENT_TYPES},
    'general': {**IMAGE_TYPES, **DOCUMENT_TYPES},
}

# Leading bytes each declared type must start with
MAGIC_BYTES = {
    'image/jpeg': [bytes.fromhex('FFD8FF')],
    'image/png': [bytes.fromhex('89504E47')],
    'image/gif': [bytes.fromhex('47494638')],
    'image/webp': [bytes.fromhex('52494646')],
    'application/pdf': [bytes.fromhex('25504446')],
    'application/msword': [bytes.fromhex('D0CF11E0')],
    'application/vnd.ms-excel': [bytes.fromhex('D0CF11E0')],
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': [bytes.fromhex('504B0304')],
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': [bytes.fromhex('504B0304')],
}

# Executables and archives, rejected whatever the declared type
BLOCKED_SIGNATURES = [
    bytes.fromhex('4D5A'),          # Windows PE
    bytes.fromhex('5A4D'),
    bytes.fromhex('377ABCAF271C'),  # 7z
    bytes.fromhex('504B0304'),      # zip
    bytes.fromhex('52617221'),      # rar
]
ZIP_CONTAINER_TYPES = {
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

SUSPICIOUS_FILENAME_PATTERNS = [
    re.compile(r'\.(exe|bat|cmd|com|pif|scr|vbs|js|jar|app)$', re.IGNORECASE),
    re.compile(r'\.(php|asp|jsp|pl|py|sh)$', re.IGNORECASE),
    re.compile(r'^<script', re.IGNORECASE),
    re.compile(r'^javascript:', re.IGNORECASE),
    re.compile(r'^data:', re.IGNORECASE),
    re.compile(r'\.\.[/\\]'),
    re.compile(r'[<>:"|*?]'),
]

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
URL_PATTERN = re.compile(r'^https?://[a-zA-Z0-9.-]+(:\d+)?(/.*)?$')

MIN_SIGNUP_PASSWORD_LENGTH = 8
MIN_RESET_PASSWORD_LENGTH = 6


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None or data[field] == '']

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def require_fields(data: Optional[Dict[str, Any]], required_fields: List[str]) -> Dict[str, Any]:
    """Raise ValidationError unless every field is present; returns the payload."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    is_valid, error = validate_required_fields(data, required_fields)
    if not is_valid:
        raise ValidationError(error)
    return data


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    return True, None


def validate_password(password: str, min_length: int = MIN_SIGNUP_PASSWORD_LENGTH) -> Tuple[bool, Optional[str]]:
    if not password or not isinstance(password, str):
        return False, "Password is required"

    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"

    return True, None


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate URL format

    Args:
        url: URL to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url or not isinstance(url, str):
        return False, "URL must be a non-empty string"

    if len(url) > 2048:
        return False, "URL too long"

    if not URL_PATTERN.match(url):
        return False, "Invalid URL format"

    return True, None


def validate_choice(value: Any, choices, field: str) -> Any:
    """Raise ValidationError when value is not one of the allowed choices."""
    if value not in choices:
        raise ValidationError(f"Invalid {field}. Allowed values: {', '.join(choices)}")
    return value


def parse_int(value: Any, field: str, default: Optional[int] = None,
              min_value: Optional[int] = None, max_value: Optional[int] = None) -> Optional[int]:
    """Coerce query/body values to int within bounds, raising ValidationError otherwise."""
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if min_value is not None and number < min_value:
        raise ValidationError(f"{field} must be at least {min_value}")
    if max_value is not None and number > max_value:
        raise ValidationError(f"{field} must be at most {max_value}")
    return number


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Parse an ISO-ish date string to a naive UTC datetime; None stays None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} must be a valid date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz.UTC).replace(tzinfo=None)
    return parsed


# ============================================================================
# RPC INPUT SCHEMAS
# ============================================================================

ID = 'id'
STRING = 'string'
INT = 'int'
NUMBER = 'number'
BOOL = 'bool'
OBJECT = 'object'
LIST = 'list'

MAX_ID_LENGTH = 128
SCALAR_TYPES = (str, int, float, bool)


class Field:
    """One declared input field: its kind, whether it must be present, and the kind of list items."""

    def __init__(self, kind: str, required: bool = False, items: Optional[str] = None):
        self.kind = kind
        self.required = required
        self.items = items


def required(kind: str, items: Optional[str] = None) -> Field:
    return Field(kind, required=True, items=items)


def list_of(items: str, required: bool = False) -> Field:
    return Field(LIST, required=required, items=items)


def is_id_field(name: str) -> bool:
    return name == 'id' or name.endswith('Id')


def require_str(value: Any, field: str, max_length: Optional[int] = None) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def parse_id(value: Any, field: str) -> Optional[str]:
    """Record ids are opaque strings; blank means absent."""
    if value is None:
        return None
    value = require_str(value, field, MAX_ID_LENGTH).strip()
    return value or None


def coerce_value(value: Any, kind: str, field: str, items: Optional[str] = None) -> Any:
    """Check one value against a field kind, converting where JSON is ambiguous."""
    if kind == ID:
        return parse_id(value, field)
    if kind == STRING:
        return require_str(value, field)
    if kind == INT:
        if isinstance(value, bool) or isinstance(value, (dict, list)):
            raise ValidationError(f"{field} must be an integer")
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{field} must be an integer")
        return parse_int(value, field)
    if kind == NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValidationError(f"{field} must be a number")
        try:
            return float(value)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    if kind == BOOL:
        if isinstance(value, bool):
            return value
        if value in ('true', 'false'):
            return value == 'true'
        raise ValidationError(f"{field} must be true or false")
    if kind == OBJECT:
        if not isinstance(value, dict):
            raise ValidationError(f"{field} must be an object")
        return value
    if kind == LIST:
        if not isinstance(value, list):
            raise ValidationError(f"{field} must be a list")
        if items is None:
            return value
        return [coerce_value(item, items, f"{field}[{index}]") for index, item in enumerate(value)]
    raise ValueError(f"Unknown field kind: {kind}")


def is_plain_value(value: Any) -> bool:
    """JSON scalar, or a list of scalars."""
    if value is None or isinstance(value, SCALAR_TYPES):
        return True
    if isinstance(value, list):
        return all(item is None or isinstance(item, SCALAR_TYPES) for item in value)
    return False


def validate_input(data: Any, schema: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Validate an RPC input object against a procedure's schema.

    Declared fields are type-checked and coerced; a schema value is either a
    kind or a Field. Undeclared fields may only hold scalars or lists of
    scalars, and any field named ``id`` or ending in ``Id`` must be a string.

    Args:
        data: Decoded JSON input (None is treated as an empty object)
        schema: Field name -> kind or Field

    Returns:
        A new dict with coerced values

    Raises:
        ValidationError: On the first field with the wrong shape
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Input must be a JSON object")

    schema = schema or {}
    result = dict(data)
    for name, spec in schema.items():
        spec = spec if isinstance(spec, Field) else Field(spec)
        value = data.get(name)
        if value is not None:
            value = coerce_value(value, spec.kind, name, spec.items)
            if name in data:
                result[name] = value
        if value is None and spec.required:
            raise ValidationError(f"{name} is required")

    for name, value in data.items():
        if name in schema:
            continue
        if is_id_field(name):
            result[name] = parse_id(value, name)
        elif not is_plain_value(value):
            raise ValidationError(f"{name} has an unsupported type")
    return result


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal attacks

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    safe_name = secure_filename(filename)

    # If secure_filename removes everything, generate a default name
    if not safe_name:
        safe_name = 'file'

    return safe_name


def get_extension(filename: str) -> str:
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


def stored_filename(filename: str, extension: str) -> str:
    """Sanitized stem plus the already checked, lowercased extension."""
    stem = filename[:-(len(extension) + 1)] if extension else filename
    return f"{sanitize_filename(stem)}.{extension}" if extension else sanitize_filename(stem)


def is_suspicious_filename(filename: str) -> bool:
    """True when the name looks like an executable, a script or a traversal attempt."""
    return any(pattern.search(filename) for pattern in SUSPICIOUS_FILENAME_PATTERNS)


def check_file_signature(content: bytes, declared_type: str) -> Tuple[bool, Optional[str]]:
    """
    Compare the leading bytes of a file against its declared MIME type.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not content:
        return False, "File is empty"

    for signature in BLOCKED_SIGNATURES:
        if content.startswith(signature):
            if signature == bytes.fromhex('504B0304') and declared_type in ZIP_CONTAINER_TYPES:
                continue
            return False, "File content is not allowed"

    expected = MAGIC_BYTES.get(declared_type)
    if expected and not any(content.startswith(sig) for sig in expected):
        return False, f"File content does not match declared type {declared_type}"

    if declared_type == 'image/webp' and content[8:12] != b'WEBP':
        return False, f"File content does not match declared type {declared_type}"

    return True, None


def validate_file_upload(
    filename: str,
    content: bytes,
    declared_type: str,
    upload_type: str = 'general'
) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Comprehensive file upload validation

    Checks, in order: filename patterns, declared type, extension/type
    agreement, size ceiling for the upload type, and magic bytes.

    Args:
        filename: Client supplied filename
        content: Complete file bytes
        declared_type: MIME type sent by the client
        upload_type: profile, portfolio, attachment or general

    Returns:
        Tuple of (is_valid, error_message, sanitized_filename)
    """
    if not filename:
        return False, "No file provided", None

    if is_suspicious_filename(filename):
        logger.warning(f"Rejected suspicious filename: {filename!r}")
        return False, "Filename is not allowed", None

    allowed_types = ALLOWED_TYPES_BY_UPLOAD.get(upload_type)
    if allowed_types is None:
        return False, f"Unknown upload type: {upload_type}", None

    declared_type = (declared_type or '').split(';')[0].strip().lower()
    if declared_type not in allowed_types:
        return False, f"File type not allowed. Allowed types: {', '.join(sorted(allowed_types))}", None

    extension = get_extension(filename)
    if extension not in allowed_types[declared_type]:
        return False, "File extension does not match file type", None
    safe_filename = stored_filename(filename, extension)

    max_size = UPLOAD_SIZE_LIMITS.get(upload_type, MAX_FILE_SIZE)
    if len(content) > max_size:
        return False, f"File too large (maximum {max_size / MB:.0f}MB)", None

    is_valid, error = check_file_signature(content, declared_type)
    if not is_valid:
        logger.warning(f"Rejected upload {safe_filename}: {error}")
        return False, error, None

    logger.info(f"File validation successful: {safe_filename} ({len(content)} bytes)")
    return True, None, safe_filename


def validate_upload_metadata(filename: str, declared_type: str, size: int,
                             upload_type: str = 'general') -> Tuple[bool, Optional[str]]:
    """
    Validation for presigned uploads, where the bytes never reach the server.
    """
    if not filename or is_suspicious_filename(filename):
        return False, "Filename is not allowed"

    allowed_types = ALLOWED_TYPES_BY_UPLOAD.get(upload_type)
    if allowed_types is None:
        return False, f"Unknown upload type: {upload_type}"

    declared_type = (declared_type or '').lower()
    if declared_type not in allowed_types:
        return False, "File type not allowed"

    if get_extension(filename) not in allowed_types[declared_type]:
        return False, "File extension does not match file type"

    max_size = UPLOAD_SIZE_LIMITS.get(upload_type, MAX_FILE_SIZE)
    if not isinstance(size, int) or size <= 0 or size > max_size:
        return False, f"File size must be between 1 byte and {max_size / MB:.0f}MB"

    return True, None
