"""
Invoice Reminder Service - finds invoices that need a payment reminder.

Two kinds of reminders are sent:
- upcoming: first reminder when the due date is 2 to 4 days away
- overdue: once the due date has passed, then again every 3 days

Run daily by the cron endpoint and on demand by admins.
"""

import logging
from typing import Dict, List, Any, Optional
from datetime import datetime, timedelta

from sqlalchemy import and_, or_

from database.models import Invoice
from services.email_hooks import EmailHooks

logger = logging.getLogger(__name__)


REMINDER_CONFIGS = {
    'invoice_upcoming': {
        'description': 'Invoices coming due soon that have not been reminded',
        'min_days': 2,
        'max_days': 4,
    },
    'invoice_overdue': {
        'description': 'Invoices past their due date',
        'repeat_days': 3,
    },
    'invoice_due_soon': {
        'description': 'Invoices due within this many days (manual admin run)',
        'days_threshold': 3,
    },
}

OPEN_STATUSES = ('PENDING', 'OVERDUE')


class InvoiceReminderService:
    """Selects invoices and sends reminders through EmailHooks."""

    def __init__(self, session, email_service):
        self.session = session
        self.hooks = EmailHooks(session, email_service)

    def find_invoices_needing_reminder(self, now: Optional[datetime] = None) -> List[Invoice]:
        now = now or datetime.utcnow()
        upcoming = REMINDER_CONFIGS['invoice_upcoming']
        repeat = timedelta(days=REMINDER_CONFIGS['invoice_overdue']['repeat_days'])

        return self.session.query(Invoice).filter(
            Invoice.status.in_(OPEN_STATUSES),
            or_(
                and_(
                    Invoice.due_date >= now + timedelta(days=upcoming['min_days']),
                    Invoice.due_date <= now + timedelta(days=upcoming['max_days']),
                    Invoice.last_reminder_sent.is_(None)
                ),
                and_(
                    Invoice.due_date < now,
                    or_(
                        Invoice.last_reminder_sent.is_(None),
                        Invoice.last_reminder_sent < now - repeat
                    )
                )
            )
        ).all()

    def process_pending(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Send every reminder that is due.

        Returns:
            {'successful': n, 'skipped': n, 'failed': n}
        """
        now = now or datetime.utcnow()
        results = []
        for invoice in self.find_invoices_needing_reminder(now):
            results.append(self.hooks.on_invoice_reminder(invoice.id, invoice.due_date < now, now=now))

        summary = self._summarize(results)
        logger.info(f"Invoice reminders processed: {summary['successful']} sent, "
                    f"{summary['skipped']} skipped, {summary['failed']} failed")
        return summary

    def send_for_selection(self, invoice_id: str = None, check_overdue: bool = False,
                           now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Admin-triggered reminders.

        Args:
            invoice_id: remind a single invoice
            check_overdue: remind every open invoice past its due date
            (neither): remind every PENDING invoice due within 3 days
        """
        now = now or datetime.utcnow()
        query = self.session.query(Invoice)
        if invoice_id:
            query = query.filter(Invoice.id == invoice_id)
        elif check_overdue:
            query = query.filter(Invoice.status.in_(OPEN_STATUSES), Invoice.due_date < now)
        else:
            threshold = now + timedelta(days=REMINDER_CONFIGS['invoice_due_soon']['days_threshold'])
            query = query.filter(
                Invoice.status == 'PENDING',
                Invoice.due_date >= now,
                Invoice.due_date <= threshold
            )

        invoices = query.all()
        results = [self.hooks.on_invoice_reminder(inv.id, inv.due_date < now, now=now)
                   for inv in invoices]
        summary = self._summarize(results)
        summary['total'] = len(invoices)
        return summary

    @staticmethod
    def _summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
        return {
            'successful': sum(1 for r in results if r.get('success') and not r.get('skipped')),
            'skipped': sum(1 for r in results if r.get('skipped')),
            'failed': sum(1 for r in results if not r.get('success')),
        }
