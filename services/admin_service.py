"""
Admin Service - user role management, dashboard counts and the analytics
and project timeline views.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Any

from sqlalchemy import func

from database.models import User, Project, Invoice, Payment, Message
from services.access import require_admin
from services.users_repository import UsersRepository
from validators import parse_datetime, validate_choice

logger = logging.getLogger(__name__)

# period -> days back from now; None covers all time
ANALYTICS_PERIODS = {'7d': 7, '30d': 30, '90d': 90, '1y': 365, 'all': None}
ACTIVE_CLIENT_WINDOW = timedelta(days=30)
RECENT_ACTIVITY_LIMIT = 50
TIMELINE_MESSAGES = 5


def _iso(value):
    return value.isoformat() if value else None


def paid_total(invoices) -> float:
    """Sum of COMPLETED payments across the given invoices."""
    return sum(p.amount for invoice in invoices for p in invoice.payments if p.status == 'COMPLETED')


def client_summary(user):
    if user is None:
        return None
    return {'id': user.id, 'name': user.name, 'email': user.email}


class AdminService:

    def __init__(self, session, user: Dict):
        self.session = session
        self.user = require_admin(user)
        self.users = UsersRepository(session)

    def get_users(self, role: str = None, search: str = None) -> List[Dict]:
        return self.users.list_users(role=role, search=search)

    def promote_to_admin(self, user_id: str) -> Dict[str, Any]:
        user = self.users.promote_to_admin(user_id)
        return {'success': True, 'user': user,
                'message': f"User {user['email']} promoted to admin successfully"}

    def demote_to_client(self, user_id: str) -> Dict[str, Any]:
        user = self.users.demote_to_client(user_id, acting_user_id=self.user['id'])
        return {'success': True, 'user': user,
                'message': f"User {user['email']} demoted to client successfully"}

    def get_admin_stats(self) -> Dict[str, int]:
        count_users = lambda *criteria: self.session.query(func.count(User.id)).filter(*criteria).scalar() or 0
        return {
            'totalUsers': count_users(),
            'adminCount': count_users(User.role == 'ADMIN'),
            'clientCount': count_users(User.role == 'CLIENT'),
            'totalProjects': self.session.query(func.count(Project.id)).scalar() or 0,
        }

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    def get_analytics(self, period: str = '30d', date_range: Dict = None) -> Dict[str, Any]:
        """
        Revenue, project, client and chat figures for the admin dashboard.

        An explicit ``date_range`` with both ``from`` and ``to`` wins over
        ``period``. The window applies to each row's created_at.
        """
        since, until = self._window(period, date_range)
        now = datetime.utcnow()

        def created_in(model):
            criteria = []
            if since:
                criteria.append(model.created_at >= since)
            if until:
                criteria.append(model.created_at <= until)
            return criteria

        payments = (self.session.query(Payment)
                    .filter(Payment.status == 'COMPLETED', *created_in(Payment))
                    .order_by(Payment.created_at).all())
        projects = self.session.query(Project).filter(*created_in(Project)).order_by(Project.created_at).all()
        clients = (self.session.query(User)
                   .filter(User.role == 'CLIENT', *created_in(User))
                   .order_by(User.last_active_at.desc()).all())
        messages = self.session.query(Message).filter(*created_in(Message)).order_by(Message.created_at).all()
        logger.debug(f"Analytics window {since} - {until}: {len(payments)} payment(s), {len(projects)} project(s)")

        sent_counts = dict(self.session.query(Message.sender_id, func.count(Message.id))
                           .group_by(Message.sender_id))
        status_counts = Counter(p.status for p in projects)
        project_count = len(projects)
        active_since = now - ACTIVE_CLIENT_WINDOW

        revenue_by_month = defaultdict(float)
        for payment in payments:
            revenue_by_month[payment.created_at.strftime('%Y-%m')] += payment.amount

        projects_by_month = defaultdict(lambda: {'created': 0, 'completed': 0})
        for project in projects:
            month = projects_by_month[project.created_at.strftime('%Y-%m')]
            month['created'] += 1
            if project.status == 'COMPLETED':
                month['completed'] += 1

        messages_by_day = defaultdict(lambda: {'total': 0, 'fromClients': 0, 'fromAdmins': 0})
        for message in messages:
            day = messages_by_day[message.created_at.strftime('%Y-%m-%d')]
            day['total'] += 1
            day['fromClients' if message.sender.role == 'CLIENT' else 'fromAdmins'] += 1

        project_revenue = {p.id: paid_total(p.invoices) for p in projects}
        total_revenue = sum(p.amount for p in payments)

        return {
            'summary': {
                'totalRevenue': total_revenue,
                'averageProjectValue': sum(project_revenue.values()) / project_count if project_count else 0,
                'totalProjects': project_count,
                'completedProjects': status_counts.get('COMPLETED', 0),
                'activeProjects': status_counts.get('IN_PROGRESS', 0),
                'completionRate': status_counts.get('COMPLETED', 0) / project_count if project_count else 0,
                'totalClients': len(clients),
                'activeClients': sum(1 for c in clients if c.last_active_at and c.last_active_at > active_since),
                'totalMessages': len(messages),
                'averageMessagesPerProject': len(messages) / project_count if project_count else 0,
            },
            'charts': {
                'revenueByMonth': [{'period': month, 'revenue': amount}
                                   for month, amount in revenue_by_month.items()],
                'projectsByMonth': [dict(counts, period=month) for month, counts in projects_by_month.items()],
                'messagesByDay': [dict(counts, date=day) for day, counts in messages_by_day.items()],
                'projectStatus': [
                    {'status': status, 'count': count, 'percentage': count / project_count * 100}
                    for status, count in status_counts.items()
                ],
            },
            'projects': [{
                'id': p.id,
                'title': p.title,
                'status': p.status,
                'progress': p.progress,
                'client': client_summary(p.client),
                'createdAt': _iso(p.created_at),
                'updatedAt': _iso(p.updated_at),
                'messageCount': len(p.messages),
                'revenue': project_revenue[p.id],
                'milestoneCount': len(p.milestones),
                'completedMilestones': sum(1 for m in p.milestones if m.status == 'COMPLETED'),
            } for p in projects],
            'clients': [{
                'id': c.id,
                'name': c.name or c.email,
                'email': c.email,
                'projectCount': len(c.projects),
                'messageCount': sent_counts.get(c.id, 0),
                'totalSpent': paid_total(self.session.query(Invoice).filter(Invoice.client_id == c.id)),
                'lastActive': _iso(c.last_active_at),
            } for c in clients],
            'recentActivity': [{
                'id': m.id,
                'type': 'message',
                'description': f"{m.sender.name or m.sender.email} sent a message in {m.project.title}",
                'timestamp': _iso(m.created_at),
                'user': {'id': m.sender.id, 'name': m.sender.name, 'role': m.sender.role},
                'project': {'id': m.project.id, 'title': m.project.title},
            } for m in messages[-RECENT_ACTIVITY_LIMIT:]],
        }

    def get_project_timeline(self, project_id: str = None, client_id: str = None,
                             date_range: Dict = None) -> List[Dict[str, Any]]:
        """Projects newest first with milestones, the last few messages and money owed."""
        q = self.session.query(Project)
        if project_id:
            q = q.filter(Project.id == project_id)
        elif client_id:
            q = q.filter(Project.client_id == client_id)

        since, until = self._window('all', date_range)
        if since and until:
            q = q.filter(Project.created_at >= since, Project.created_at <= until)

        timeline = []
        for project in q.order_by(Project.created_at.desc()):
            recent = sorted(project.messages, key=lambda m: m.created_at, reverse=True)[:TIMELINE_MESSAGES]
            invoiced = sum(i.amount for i in project.invoices)
            paid = paid_total(project.invoices)
            pending = sum(max(0, i.amount - paid_total([i])) for i in project.invoices)
            timeline.append({
                'id': project.id,
                'title': project.title,
                'description': project.description,
                'status': project.status,
                'progress': project.progress,
                'client': client_summary(project.client),
                'createdAt': _iso(project.created_at),
                'updatedAt': _iso(project.updated_at),
                'milestones': [{
                    'id': m.id, 'title': m.title, 'status': m.status, 'order': m.order,
                    'createdAt': _iso(m.created_at), 'updatedAt': _iso(m.updated_at),
                } for m in project.milestones],
                'recentMessages': [{
                    'id': m.id,
                    'content': m.content[:100],
                    'createdAt': _iso(m.created_at),
                    'sender': {'name': m.sender.name, 'role': m.sender.role},
                } for m in recent],
                'financials': {'totalInvoiced': invoiced, 'totalPaid': paid, 'pendingAmount': pending},
            })
        return timeline

    @staticmethod
    def _window(period: str, date_range: Dict = None):
        """(since, until) for an explicit range or a named period; None means unbounded."""
        date_range = date_range or {}
        since = parse_datetime(date_range.get('from'), 'dateRange.from')
        until = parse_datetime(date_range.get('to'), 'dateRange.to')
        if since and until:
            return since, until

        period = validate_choice(period or '30d', tuple(ANALYTICS_PERIODS), 'period')
        days = ANALYTICS_PERIODS[period]
        return (datetime.utcnow() - timedelta(days=days) if days else None), None
