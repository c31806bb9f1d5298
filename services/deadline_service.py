"""
Deadline Service - project, milestone and invoice due dates in one list.

Open projects and milestones contribute their deadline, open invoices
(PENDING or OVERDUE) their due date. Clients see items from their own
projects; admins can list everything, optionally for one client.

Urgency windows:
    overdue   due before now
    urgent    due within the next 24 hours
    upcoming  due after that, within 7 days
    normal    anything later
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional

from database.models import Project, Milestone, Invoice
from services.access import require_user, require_admin
from validators import parse_int, validate_choice

logger = logging.getLogger(__name__)

DEADLINE_TYPES = ('project', 'milestone', 'invoice')
URGENCY_FILTERS = ('overdue', 'urgent', 'upcoming', 'all')
OPEN_INVOICE_STATUSES = ('PENDING', 'OVERDUE')
URGENT_WINDOW = timedelta(days=1)
UPCOMING_WINDOW = timedelta(days=7)


def days_until(deadline: datetime, now: Optional[datetime] = None) -> int:
    """Whole days left, rounded up; negative once the deadline has passed."""
    seconds = (deadline - (now or datetime.utcnow())).total_seconds()
    return math.ceil(seconds / 86400)


def get_urgency(deadline: datetime, now: Optional[datetime] = None) -> Dict[str, Any]:
    days = days_until(deadline, now)
    if days < 0:
        return {'level': 'overdue', 'daysRemaining': days, 'message': f"{abs(days)} days overdue"}
    if days <= 1:
        return {'level': 'urgent', 'daysRemaining': days,
                'message': 'Due today' if days == 0 else 'Due tomorrow'}
    level = 'upcoming' if days <= 7 else 'normal'
    return {'level': level, 'daysRemaining': days, 'message': f"{days} days left"}


def client_label(user) -> Optional[str]:
    if user is None:
        return None
    return user.name or user.email


class DeadlineService:

    def __init__(self, session, user: Dict):
        self.session = session
        self.user = require_user(user)

    # =========================================================================
    # CLIENT VIEWS
    # =========================================================================

    def get_upcoming(self, limit=10, days_ahead=30) -> List[Dict[str, Any]]:
        """Open items due between now and ``days_ahead`` days out, soonest first."""
        limit = parse_int(limit, 'limit', default=10, min_value=1, max_value=50)
        days_ahead = parse_int(days_ahead, 'daysAhead', default=30, min_value=1, max_value=365)
        now = datetime.utcnow()
        items = self._collect(lambda column: [column >= now, column <= now + timedelta(days=days_ahead)],
                              client_id=self.user['id'])
        items.sort(key=lambda item: item['deadline'])
        return [self._serialize(item, now) for item in items[:limit]]

    def get_overdue(self) -> List[Dict[str, Any]]:
        """Open items past due, most recently missed first."""
        now = datetime.utcnow()
        items = self._collect(lambda column: [column < now], client_id=self.user['id'])
        items.sort(key=lambda item: item['deadline'], reverse=True)
        return [self._serialize(item, now, invoice_status='OVERDUE') for item in items]

    def get_stats(self) -> Dict[str, int]:
        now = datetime.utcnow()
        urgent_end = now + URGENT_WINDOW
        count = lambda window: len(self._collect(window, client_id=self.user['id']))
        return {
            'overdue': count(lambda column: [column < now]),
            'urgent': count(lambda column: [column >= now, column <= urgent_end]),
            'upcoming': count(lambda column: [column > urgent_end, column <= now + UPCOMING_WINDOW]),
        }

    # =========================================================================
    # ADMIN VIEW
    # =========================================================================

    def get_all_deadlines(self, limit=20, user_id: str = None, deadline_type: str = None,
                          urgency: str = 'all') -> List[Dict[str, Any]]:
        """Every client's open items, filtered by client, type and urgency window."""
        require_admin(self.user)
        limit = parse_int(limit, 'limit', default=20, min_value=1, max_value=100)
        urgency = validate_choice(urgency or 'all', URGENCY_FILTERS, 'urgency')
        types = (validate_choice(deadline_type, DEADLINE_TYPES, 'type'),) if deadline_type else DEADLINE_TYPES

        now = datetime.utcnow()
        urgent_end = now + URGENT_WINDOW
        windows = {
            'overdue': lambda column: [column < now],
            'urgent': lambda column: [column >= now, column <= urgent_end],
            'upcoming': lambda column: [column > urgent_end, column <= now + UPCOMING_WINDOW],
            'all': lambda column: [],
        }
        items = self._collect(windows[urgency], client_id=user_id, types=types)
        logger.debug(f"Deadlines for admin {self.user['id']} ({urgency}, types={types}): {len(items)} item(s)")
        items.sort(key=lambda item: item['deadline'])
        return [self._serialize(item, now, with_client=True) for item in items[:limit]]

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _collect(self, window, client_id: str = None, types=DEADLINE_TYPES) -> List[Dict[str, Any]]:
        """
        Load open items whose due date satisfies ``window``.

        Args:
            window: column -> list of SQLAlchemy criteria on that due date column
            client_id: restrict to one client's projects and invoices
            types: which of project/milestone/invoice to include
        """
        items = []

        if 'project' in types:
            q = self.session.query(Project).filter(
                Project.deadline.isnot(None), Project.status != 'COMPLETED', *window(Project.deadline)
            )
            if client_id:
                q = q.filter(Project.client_id == client_id)
            items += [{'type': 'project', 'row': p, 'deadline': p.deadline, 'project': p} for p in q]

        if 'milestone' in types:
            q = self.session.query(Milestone).join(Project).filter(
                Milestone.due_date.isnot(None), Milestone.status != 'COMPLETED', *window(Milestone.due_date)
            )
            if client_id:
                q = q.filter(Project.client_id == client_id)
            items += [{'type': 'milestone', 'row': m, 'deadline': m.due_date, 'project': m.project} for m in q]

        if 'invoice' in types:
            q = self.session.query(Invoice).filter(
                Invoice.status.in_(OPEN_INVOICE_STATUSES), *window(Invoice.due_date)
            )
            if client_id:
                q = q.filter(Invoice.client_id == client_id)
            items += [{'type': 'invoice', 'row': i, 'deadline': i.due_date, 'project': i.project} for i in q]

        return items

    @staticmethod
    def _serialize(item, now, invoice_status: str = None, with_client: bool = False) -> Dict[str, Any]:
        row = item['row']
        project = item['project']
        data = {
            'id': row.id,
            'type': item['type'],
            'deadline': item['deadline'].isoformat(),
            'urgency': get_urgency(item['deadline'], now),
        }

        if item['type'] == 'invoice':
            data.update({
                'title': f"Invoice {row.number}",
                'status': invoice_status or row.status,
                'projectTitle': project.title if project else None,
                'amount': row.amount,
                'currency': row.currency,
            })
            client = row.client
        else:
            data.update({'title': row.title, 'status': row.status})
            if item['type'] == 'milestone':
                data['projectTitle'] = project.title
            client = project.client

        if with_client:
            data['clientName'] = client_label(client)
        return data
