"""
Search Service - one query across projects, portfolio, messages, invoices,
clients and files, plus paged per-entity searches with filters and
autocomplete suggestions.

In the global search clients only see their own projects and the public
portfolio; the other result groups are admin-only and are left out of a
client's results. The filtered message search reaches a client's own
project chats, and invoice search is admin-only.
"""

import logging
from typing import Dict, List, Any

from sqlalchemy import String, cast, or_, func

from database.models import (
    Project, PortfolioItem, Message, Invoice, User, Attachment, PortfolioImage,
    INVOICE_STATUSES, PROJECT_STATUSES,
)
from services.access import require_user, is_admin
from services.errors import PermissionDenied, ValidationError
from validators import parse_datetime, parse_int, validate_choice

logger = logging.getLogger(__name__)

SEARCH_TYPES = ('all', 'projects', 'portfolio', 'messages', 'invoices', 'clients', 'files')
ADMIN_ONLY_TYPES = ('messages', 'invoices', 'clients', 'files')
MAX_QUERY_LENGTH = 100
ALL_TYPES_LIMIT = 5
SUGGESTION_TYPES = ('projects', 'portfolio', 'clients', 'tags')
MAX_SUGGESTION_LENGTH = 50


class SearchService:

    def __init__(self, session, user: Dict):
        self.session = session
        self.user = require_user(user)

    def global_search(self, query: str, limit=10, search_type: str = 'all') -> Dict[str, List[Dict]]:
        query = (query or '').strip()
        if not query or len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Query must be 1 to {MAX_QUERY_LENGTH} characters")
        limit = parse_int(limit, 'limit', default=10, min_value=1, max_value=50)
        search_type = validate_choice(search_type or 'all', SEARCH_TYPES, 'type')
        pattern = f"%{query}%"
        admin = is_admin(self.user)

        def wanted(group):
            if search_type not in ('all', group):
                return False
            return admin or group not in ADMIN_ONLY_TYPES

        # 'all' returns a few of each group; a single group gets the full limit
        take = limit if search_type != 'all' else min(limit, ALL_TYPES_LIMIT)
        results = {}

        if wanted('projects'):
            q = self.session.query(Project).filter(
                or_(Project.title.ilike(pattern), Project.description.ilike(pattern))
            )
            if not admin:
                q = q.filter(Project.client_id == self.user['id'])
            results['projects'] = [
                p.to_dict(include_client=True)
                for p in q.order_by(Project.updated_at.desc()).limit(take)
            ]

        if wanted('portfolio'):
            items = self.session.query(PortfolioItem).filter(or_(
                PortfolioItem.title.ilike(pattern),
                PortfolioItem.description.ilike(pattern),
                PortfolioItem.category.ilike(pattern),
            )).order_by(PortfolioItem.featured.desc(), PortfolioItem.created_at.desc()).limit(take)
            results['portfolio'] = [i.to_dict() for i in items]

        if wanted('messages'):
            messages = self.session.query(Message).filter(
                Message.content.ilike(pattern)
            ).order_by(Message.created_at.desc()).limit(take)
            results['messages'] = [
                dict(m.to_dict(), project={'id': m.project.id, 'title': m.project.title})
                for m in messages
            ]

        if wanted('invoices'):
            invoices = self.session.query(Invoice).filter(
                or_(Invoice.number.ilike(pattern), Invoice.description.ilike(pattern))
            ).order_by(Invoice.created_at.desc()).limit(take)
            results['invoices'] = [i.to_dict(include_project=True) for i in invoices]

        if wanted('clients'):
            clients = self.session.query(User).filter(
                User.role == 'CLIENT',
                or_(User.name.ilike(pattern), User.email.ilike(pattern))
            ).order_by(User.created_at.desc()).limit(take)
            project_counts = dict(self.session.query(Project.client_id, func.count(Project.id))
                                  .group_by(Project.client_id))
            results['clients'] = [
                dict(c.to_dict(), projectCount=project_counts.get(c.id, 0)) for c in clients
            ]

        if wanted('files'):
            attachments = self.session.query(Attachment).filter(
                Attachment.name.ilike(pattern)
            ).order_by(Attachment.created_at.desc()).limit(take).all()
            images = self.session.query(PortfolioImage).filter(
                or_(PortfolioImage.name.ilike(pattern), PortfolioImage.file_name.ilike(pattern))
            ).order_by(PortfolioImage.created_at.desc()).limit(take).all()
            files = [dict(a.to_dict(), source='chat') for a in attachments]
            files += [dict(i.to_dict(), source='portfolio') for i in images]
            files.sort(key=lambda f: f['created_at'] or '', reverse=True)
            results['files'] = files[:take]

        logger.debug(f"Search '{query}' ({search_type}) by {self.user['id']}: "
                     f"{sum(len(v) for v in results.values())} result(s)")
        return results

    # =========================================================================
    # FILTERED SEARCHES
    # =========================================================================

    @staticmethod
    def _page(q, key: str, serialize, limit, offset) -> Dict[str, Any]:
        """One page of ``q`` plus the total count and whether more rows follow."""
        limit = parse_int(limit, 'limit', default=20, min_value=1, max_value=100)
        offset = parse_int(offset, 'offset', default=0, min_value=0)
        total = q.order_by(None).count()
        return {key: [serialize(row) for row in q.limit(limit).offset(offset)],
                'total': total, 'hasMore': offset + limit < total}

    @staticmethod
    def _created_between(q, model, date_from, date_to):
        date_from = parse_datetime(date_from, 'dateFrom')
        date_to = parse_datetime(date_to, 'dateTo')
        if date_from:
            q = q.filter(model.created_at >= date_from)
        if date_to:
            q = q.filter(model.created_at <= date_to)
        return q

    def search_projects(self, query: str = None, status: str = None, client_id: str = None,
                        date_from=None, date_to=None, limit=20, offset=0) -> Dict[str, Any]:
        q = self.session.query(Project)
        if not is_admin(self.user):
            q = q.filter(Project.client_id == self.user['id'])
        elif client_id:
            q = q.filter(Project.client_id == client_id)
        if query:
            pattern = f"%{query.strip()}%"
            q = q.filter(or_(Project.title.ilike(pattern), Project.description.ilike(pattern)))
        if status:
            q = q.filter(Project.status == validate_choice(status, PROJECT_STATUSES, 'status'))
        q = self._created_between(q, Project, date_from, date_to).order_by(Project.updated_at.desc())

        def serialize(project):
            return dict(project.to_dict(include_client=True),
                        messageCount=len(project.messages), milestoneCount=len(project.milestones))

        return self._page(q, 'projects', serialize, limit, offset)

    def search_portfolio(self, query: str = None, category: str = None, featured: bool = None,
                         date_from=None, date_to=None, limit=20, offset=0) -> Dict[str, Any]:
        q = self.session.query(PortfolioItem)
        if query:
            pattern = f"%{query.strip()}%"
            q = q.filter(or_(
                PortfolioItem.title.ilike(pattern),
                PortfolioItem.description.ilike(pattern),
                cast(PortfolioItem.technologies, String).ilike(pattern),
            ))
        if category:
            q = q.filter(PortfolioItem.category == category)
        if featured is not None:
            q = q.filter(PortfolioItem.featured == featured)
        q = self._created_between(q, PortfolioItem, date_from, date_to)
        q = q.order_by(PortfolioItem.featured.desc(), PortfolioItem.created_at.desc())
        return self._page(q, 'portfolio', lambda item: item.to_dict(), limit, offset)

    def search_invoices(self, query: str = None, status: str = None, client_id: str = None,
                        amount_from=None, amount_to=None, date_from=None, date_to=None,
                        limit=20, offset=0) -> Dict[str, Any]:
        if not is_admin(self.user):
            raise PermissionDenied("Only admins can search invoices")

        q = self.session.query(Invoice)
        if query:
            pattern = f"%{query.strip()}%"
            q = q.filter(or_(Invoice.number.ilike(pattern), Invoice.description.ilike(pattern)))
        if status:
            q = q.filter(Invoice.status == validate_choice(status, INVOICE_STATUSES, 'status'))
        if client_id:
            q = q.filter(Invoice.client_id == client_id)
        if amount_from is not None:
            q = q.filter(Invoice.amount >= amount_from)
        if amount_to is not None:
            q = q.filter(Invoice.amount <= amount_to)
        q = self._created_between(q, Invoice, date_from, date_to).order_by(Invoice.created_at.desc())

        def serialize(invoice):
            client = invoice.client
            return dict(invoice.to_dict(include_project=True),
                        client={'name': client.name, 'email': client.email} if client else None)

        return self._page(q, 'invoices', serialize, limit, offset)

    def search_messages(self, query: str, project_id: str = None, sender_id: str = None,
                        date_from=None, date_to=None, limit=20, offset=0) -> Dict[str, Any]:
        """Chat search; clients only reach messages in their own projects."""
        query = (query or '').strip()
        if not query:
            raise ValidationError("Query is required")

        q = self.session.query(Message).filter(Message.content.ilike(f"%{query}%"))
        if not is_admin(self.user):
            q = q.join(Project, Message.project_id == Project.id).filter(Project.client_id == self.user['id'])
        elif project_id:
            q = q.filter(Message.project_id == project_id)
        if sender_id:
            q = q.filter(Message.sender_id == sender_id)
        q = self._created_between(q, Message, date_from, date_to).order_by(Message.created_at.desc())

        def serialize(message):
            return dict(message.to_dict(), project={'id': message.project.id, 'title': message.project.title})

        return self._page(q, 'messages', serialize, limit, offset)

    def suggestions(self, query: str, suggestion_type: str = 'projects', limit=5) -> List[Dict[str, Any]]:
        """Autocomplete entries; client suggestions are admin-only and empty for clients."""
        query = (query or '').strip()
        if not query or len(query) > MAX_SUGGESTION_LENGTH:
            raise ValidationError(f"Query must be 1 to {MAX_SUGGESTION_LENGTH} characters")
        suggestion_type = validate_choice(suggestion_type or 'projects', SUGGESTION_TYPES, 'type')
        limit = parse_int(limit, 'limit', default=5, min_value=1, max_value=10)
        pattern = f"%{query}%"

        if suggestion_type == 'projects':
            q = self.session.query(Project).filter(Project.title.ilike(pattern))
            if not is_admin(self.user):
                q = q.filter(Project.client_id == self.user['id'])
            return [{'id': p.id, 'title': p.title, 'type': 'project', 'status': p.status}
                    for p in q.order_by(Project.updated_at.desc()).limit(limit)]

        if suggestion_type == 'portfolio':
            items = (self.session.query(PortfolioItem).filter(PortfolioItem.title.ilike(pattern))
                     .order_by(PortfolioItem.created_at.desc()).limit(limit))
            return [{'id': i.id, 'title': i.title, 'type': 'portfolio', 'category': i.category,
                     'featured': i.featured} for i in items]

        if suggestion_type == 'clients':
            if not is_admin(self.user):
                return []
            clients = self.session.query(User).filter(
                User.role == 'CLIENT', or_(User.name.ilike(pattern), User.email.ilike(pattern))
            ).order_by(User.name).limit(limit)
            return [{'id': c.id, 'title': c.name or c.email, 'type': 'client', 'email': c.email,
                     'image': c.image} for c in clients]

        tags = []
        needle = query.lower()
        items = self.session.query(PortfolioItem).filter(cast(PortfolioItem.technologies, String).ilike(pattern))
        for item in items:
            for tag in item.technologies or []:
                if needle in tag.lower() and tag not in tags:
                    tags.append(tag)
        return [{'id': tag, 'title': tag, 'type': 'tag'} for tag in tags[:limit]]
