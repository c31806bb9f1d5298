"""
Portfolio Image Service - each user's uploaded gallery.

Image files live in object storage; this service only manages the rows
that point at them. A user may keep at most MAX_PORTFOLIO_IMAGES images.
"""

import logging
from typing import Dict, Any

from database.models import PortfolioImage
from services.access import require_user
from services.errors import ValidationError, NotFoundError, ServiceError
from validators import parse_int

logger = logging.getLogger(__name__)

MAX_PORTFOLIO_IMAGES = 15


def _image_dict(image: PortfolioImage) -> Dict[str, Any]:
    return {
        'id': image.id,
        'url': image.url,
        'key': image.key,
        'name': image.name,
        'fileName': image.file_name,
        'uploadedAt': image.created_at.isoformat() if image.created_at else None,
        'size': image.size,
        'type': image.type,
        'order': image.order,
    }


class PortfolioImageService:

    def __init__(self, session, user: Dict, storage=None):
        self.session = session
        self.user = require_user(user)
        self.storage = storage

    def _own(self):
        return self.session.query(PortfolioImage).filter(PortfolioImage.user_id == self.user['id'])

    def list_images(self) -> Dict[str, Any]:
        images = self._own().order_by(PortfolioImage.created_at.asc()).all()
        return {
            'images': [_image_dict(img) for img in images],
            'totalImages': len(images),
            'totalSize': sum(img.size or 0 for img in images),
        }

    def add_image(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get('url') or not data.get('key') or not data.get('name'):
            raise ValidationError("Missing required fields: url, key, name")
        if self._own().count() >= MAX_PORTFOLIO_IMAGES:
            raise ValidationError(f"Maximum {MAX_PORTFOLIO_IMAGES} images allowed")

        image = PortfolioImage(
            user_id=self.user['id'],
            url=data['url'],
            key=data['key'],
            name=data['name'],
            file_name=data.get('fileName'),
            size=data.get('size') or 0,
            type=data.get('type') or 'image/unknown'
        )
        self.session.add(image)
        self.session.flush()
        logger.info(f"User {self.user['id']} added portfolio image {image.id}")
        return _image_dict(image)

    def delete_image(self, key: str = None, image_id: str = None) -> Dict[str, Any]:
        """
        Delete one of the caller's images by storage key or id.

        A storage failure is logged and the row is removed anyway.
        """
        if not key and not image_id:
            raise ValidationError("Either 'key' or 'id' is required")
        query = self._own()
        query = query.filter(PortfolioImage.key == key) if key else query.filter(PortfolioImage.id == image_id)
        image = query.first()
        if not image:
            raise NotFoundError("Portfolio image not found")

        if self.storage is not None:
            try:
                self.storage.delete(image.key)
            except ServiceError as e:
                logger.error(f"Storage delete failed for {image.key}, removing row anyway: {e.message}")

        deleted = {'id': image.id, 'key': image.key, 'name': image.name}
        self.session.delete(image)
        return deleted

    def update_image(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get('id'):
            raise ValidationError("Image ID is required")
        image = self._own().filter(PortfolioImage.id == data['id']).first()
        if not image:
            raise NotFoundError("Portfolio image not found")
        if 'name' not in data and 'order' not in data:
            raise ValidationError("No valid fields to update")

        if 'name' in data:
            name = (data['name'] or '').strip()
            if not name:
                raise ValidationError("Name cannot be empty")
            image.name = name
        if 'order' in data:
            image.order = parse_int(data['order'], 'order', min_value=0)
        self.session.flush()
        return _image_dict(image)
