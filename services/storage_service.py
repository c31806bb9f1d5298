"""
Object storage on Cloudflare R2 through the S3-compatible API.

Uploaded objects are immutable (every upload gets a fresh key), so they are
served with a one year cache lifetime.
"""

import logging
import re
import secrets
import string
import time
import uuid
from typing import Dict, Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from services.errors import IntegrationError
from validators import get_extension

logger = logging.getLogger(__name__)

CACHE_CONTROL = 'public, max-age=31536000'
_KEY_ALPHABET = string.ascii_lowercase + string.digits


def generate_unique_filename(original_name: str) -> str:
    """``{timestamp}-{random}-{sanitized}.{ext}``"""
    extension = get_extension(original_name)
    stem = original_name.rsplit('.', 1)[0] if '.' in original_name else original_name
    sanitized = re.sub(r'[^a-zA-Z0-9_-]', '-', stem)[:100] or 'file'
    random_part = ''.join(secrets.choice(_KEY_ALPHABET) for _ in range(13))
    name = f"{int(time.time() * 1000)}-{random_part}-{sanitized}"
    return f"{name}.{extension}" if extension else name


def build_object_key(upload_type: str, original_name: str) -> str:
    return f"{upload_type}/{generate_unique_filename(original_name)}"


def build_chat_attachment_key(project_id: str, original_name: str) -> str:
    extension = get_extension(original_name)
    name = str(uuid.uuid4())
    return f"chat-attachments/{project_id}/{name}.{extension}" if extension else f"chat-attachments/{project_id}/{name}"


class StorageService:
    """Upload, delete and presign objects in one R2 bucket."""

    def __init__(self, account_id: str, access_key_id: str, secret_access_key: str,
                 bucket_name: str, public_url: Optional[str] = None,
                 presigned_expires: int = 3600, client=None):
        self.account_id = account_id
        self.bucket_name = bucket_name
        self.public_url = (public_url or '').rstrip('/')
        self.presigned_expires = presigned_expires
        self.client = client or boto3.client(
            's3',
            endpoint_url=f'https://{account_id}.r2.cloudflarestorage.com',
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version='s3v4'),
            region_name='auto'
        )

    @classmethod
    def from_config(cls, config) -> Optional['StorageService']:
        """Build from app config, or None when R2 credentials are missing."""
        if not all([config.get('R2_ACCOUNT_ID'), config.get('R2_ACCESS_KEY_ID'),
                    config.get('R2_SECRET_ACCESS_KEY')]):
            logger.warning("Cloudflare R2 credentials not configured, uploads disabled")
            return None
        logger.info("Cloudflare R2 client initialized")
        return cls(
            config['R2_ACCOUNT_ID'],
            config['R2_ACCESS_KEY_ID'],
            config['R2_SECRET_ACCESS_KEY'],
            config.get('R2_BUCKET_NAME', 'wmx-services'),
            public_url=config.get('R2_PUBLIC_URL'),
            presigned_expires=config.get('PRESIGNED_URL_EXPIRES', 3600)
        )

    def public_url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return f"https://{self.account_id}.r2.cloudflarestorage.com/{self.bucket_name}/{key}"

    def upload(self, key: str, content: bytes, content_type: str,
               metadata: Dict[str, str] = None) -> Dict[str, Any]:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
                Metadata=metadata or {}
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"R2 upload failed for {key}: {e}")
            raise IntegrationError("Failed to upload file")

        logger.info(f"Uploaded {key} ({len(content)} bytes)")
        return {'key': key, 'url': self.public_url_for(key), 'size': len(content), 'type': content_type}

    def delete(self, key: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"R2 delete failed for {key}: {e}")
            raise IntegrationError("Failed to delete file")
        logger.info(f"Deleted {key}")
        return True

    def presign_upload(self, key: str, content_type: str) -> Dict[str, Any]:
        """Presigned PUT so the browser uploads directly to the bucket."""
        try:
            url = self.client.generate_presigned_url(
                'put_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key,
                    'ContentType': content_type,
                    'CacheControl': CACHE_CONTROL,
                },
                ExpiresIn=self.presigned_expires
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Presigning {key} failed: {e}")
            raise IntegrationError("Failed to create upload URL")

        return {
            'uploadUrl': url,
            'key': key,
            'publicUrl': self.public_url_for(key),
            'expiresIn': self.presigned_expires,
        }
