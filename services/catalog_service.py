"""
Catalog Service - marketing content: service offerings and portfolio items.

Reads are public; every mutation requires an admin.
"""

import logging
from typing import Dict, List, Any

from database.models import Service, PortfolioItem
from services.access import require_admin
from services.errors import ValidationError, NotFoundError
from validators import parse_int, validate_url

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 3


def _required_text(data: Dict[str, Any], field: str) -> str:
    value = (data.get(field) or '').strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _optional_url(value, field: str):
    if not value:
        return None
    is_valid, error = validate_url(value)
    if not is_valid:
        raise ValidationError(f"{field}: {error}")
    return value


class ServiceCatalog:
    """Service offerings shown on the marketing site."""

    def __init__(self, session, user: Dict = None):
        self.session = session
        self.user = user

    def _get(self, service_id: str) -> Service:
        service = self.session.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise NotFoundError("Service not found")
        return service

    def get_all_visible(self) -> List[Dict]:
        services = self.session.query(Service).filter(Service.is_visible.is_(True)).order_by(Service.order).all()
        return [s.to_dict() for s in services]

    def get_all(self) -> List[Dict]:
        require_admin(self.user)
        return [s.to_dict() for s in self.session.query(Service).order_by(Service.order).all()]

    def get_by_id(self, service_id: str) -> Dict:
        return self._get(service_id).to_dict()

    def create(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        service = Service(
            title=_required_text(data, 'title'),
            description=_required_text(data, 'description'),
            icon=data.get('icon'),
            features=list(data.get('features') or []),
            price=str(data['price']) if data.get('price') is not None else None,
            is_visible=bool(data.get('isVisible', True)),
            order=parse_int(data.get('order'), 'order', default=0, min_value=0)
        )
        self.session.add(service)
        self.session.flush()
        logger.info(f"Created service {service.id}: {service.title}")
        return service.to_dict()

    def update(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        service = self._get(data.get('id'))
        if 'title' in data:
            service.title = _required_text(data, 'title')
        if 'description' in data:
            service.description = _required_text(data, 'description')
        if 'icon' in data:
            service.icon = data['icon']
        if 'features' in data:
            service.features = list(data['features'] or [])
        if 'price' in data:
            service.price = str(data['price']) if data['price'] is not None else None
        if 'isVisible' in data:
            service.is_visible = bool(data['isVisible'])
        if 'order' in data:
            service.order = parse_int(data['order'], 'order', default=service.order, min_value=0)
        self.session.flush()
        return service.to_dict()

    def delete(self, service_id: str) -> Dict[str, bool]:
        require_admin(self.user)
        self.session.delete(self._get(service_id))
        return {'success': True}

    def toggle_visibility(self, service_id: str) -> Dict:
        require_admin(self.user)
        service = self._get(service_id)
        service.is_visible = not service.is_visible
        self.session.flush()
        return service.to_dict()

    def update_order(self, service_id: str, order) -> Dict:
        require_admin(self.user)
        service = self._get(service_id)
        service.order = parse_int(order, 'order', min_value=1)
        self.session.flush()
        return service.to_dict()


class PortfolioCatalog:
    """Public portfolio entries."""

    def __init__(self, session, user: Dict = None):
        self.session = session
        self.user = user

    def _get(self, item_id: str) -> PortfolioItem:
        item = self.session.query(PortfolioItem).filter(PortfolioItem.id == item_id).first()
        if not item:
            raise NotFoundError("Portfolio item not found")
        return item

    def get_all(self) -> List[Dict]:
        items = self.session.query(PortfolioItem).order_by(
            PortfolioItem.featured.desc(), PortfolioItem.created_at.desc()
        ).all()
        return [i.to_dict() for i in items]

    def get_featured(self) -> List[Dict]:
        items = self.session.query(PortfolioItem).filter(
            PortfolioItem.featured.is_(True)
        ).order_by(PortfolioItem.created_at.desc()).limit(FEATURED_LIMIT).all()
        return [i.to_dict() for i in items]

    def get_by_category(self, category: str) -> List[Dict]:
        items = self.session.query(PortfolioItem).filter(
            PortfolioItem.category == category
        ).order_by(PortfolioItem.created_at.desc()).all()
        return [i.to_dict() for i in items]

    def get_by_id(self, item_id: str) -> Dict:
        return self._get(item_id).to_dict()

    def create(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        item = PortfolioItem(
            title=_required_text(data, 'title'),
            description=_required_text(data, 'description'),
            category=_required_text(data, 'category'),
            image_url=_optional_url(data.get('imageUrl'), 'imageUrl'),
            project_url=_optional_url(data.get('projectUrl'), 'projectUrl'),
            technologies=list(data.get('technologies') or []),
            featured=bool(data.get('featured', False)),
            order=parse_int(data.get('order'), 'order', default=0, min_value=0)
        )
        self.session.add(item)
        self.session.flush()
        return item.to_dict()

    def update(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        item = self._get(data.get('id'))
        for field in ('title', 'description', 'category'):
            if field in data:
                setattr(item, field, _required_text(data, field))
        if 'imageUrl' in data:
            item.image_url = _optional_url(data['imageUrl'], 'imageUrl')
        if 'projectUrl' in data:
            item.project_url = _optional_url(data['projectUrl'], 'projectUrl')
        if 'technologies' in data:
            item.technologies = list(data['technologies'] or [])
        if 'featured' in data:
            item.featured = bool(data['featured'])
        if 'order' in data:
            item.order = parse_int(data['order'], 'order', default=item.order, min_value=0)
        self.session.flush()
        return item.to_dict()

    def delete(self, item_id: str) -> Dict[str, bool]:
        require_admin(self.user)
        self.session.delete(self._get(item_id))
        return {'success': True}

    def toggle_featured(self, item_id: str) -> Dict:
        require_admin(self.user)
        item = self._get(item_id)
        item.featured = not item.featured
        self.session.flush()
        return item.to_dict()
