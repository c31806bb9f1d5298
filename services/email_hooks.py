"""
Email Hooks - domain events that send an email and record it in EmailLog.

Each hook loads what it needs by id, checks the recipient's email
preferences, sends through EmailService and writes one EmailLog row with
status SENT, FAILED or SKIPPED. Hooks run as background tasks, so they
never raise for delivery problems; they return the send result.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Any

from database.models import User, Project, Message, Invoice, EmailLog
from services.background import in_session

logger = logging.getLogger(__name__)

ONLINE_WINDOW = timedelta(minutes=5)


def log_email(session, email: str, email_type: str, subject: str, result: Dict[str, Any],
              user_id: str = None) -> EmailLog:
    """Write an EmailLog row for a send result."""
    if result.get('skipped'):
        status = 'SKIPPED'
    else:
        status = 'SENT' if result.get('success') else 'FAILED'
    entry = EmailLog(
        user_id=user_id,
        email=email,
        type=email_type,
        subject=subject,
        status=status,
        error=result.get('error'),
        sent_at=datetime.utcnow()
    )
    session.add(entry)
    session.flush()
    return entry


def is_recently_active(user: User, now: datetime = None) -> bool:
    if not user.last_active_at:
        return False
    return user.last_active_at > (now or datetime.utcnow()) - ONLINE_WINDOW


def wants_email(user: User, category: str) -> bool:
    """Check the master switch and the category preference."""
    if not user.email_notifications:
        return False
    return bool({
        'project': user.email_project_updates,
        'chat': user.email_chat_messages,
        'invoice': user.email_invoices,
        'marketing': user.email_marketing,
    }.get(category, True))


class EmailHooks:
    """Event handlers bound to a session and an EmailService."""

    def __init__(self, session, email_service):
        self.session = session
        self.email_service = email_service

    def on_user_registered(self, user_id: str) -> Dict[str, Any]:
        user = self.session.query(User).filter(User.id == user_id).first()
        if not user:
            logger.error(f"Welcome email: user {user_id} not found")
            return {'success': False, 'error': 'User not found'}

        result = self.email_service.send_welcome(user.email, user.name)
        log_email(self.session, user.email, 'WELCOME', "Welcome to WMX Services!", result, user.id)
        return result

    def on_project_status_changed(self, project_id: str, previous_status: str,
                                  message: str = None, new_status: str = None) -> Dict[str, Any]:
        """
        Tell the client about a status change.

        new_status overrides the stored status; completion by progress sends
        COMPLETED before the status column itself changes.
        """
        project = self.session.query(Project).filter(Project.id == project_id).first()
        if not project or not project.client:
            logger.error(f"Project status email: project {project_id} or its client not found")
            return {'success': False, 'error': 'Project or client not found'}

        client = project.client
        subject = f"Project Update: {project.title}"
        if not wants_email(client, 'project'):
            result = {'success': True, 'skipped': True}
        else:
            result = self.email_service.send_project_status(
                client.email, client.name, project.id, project.title,
                previous_status, new_status or project.status, project.progress, message
            )
        log_email(self.session, client.email, 'PROJECT_STATUS', subject, result, client.id)
        return result

    def on_invoice_created(self, invoice_id: str) -> Dict[str, Any]:
        invoice = self.session.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice or not invoice.client:
            logger.error(f"Invoice email: invoice {invoice_id} or its client not found")
            return {'success': False, 'error': 'Invoice or client not found'}

        client = invoice.client
        project_title = invoice.project.title if invoice.project else ''
        subject = f"New Invoice: {invoice.number} - {project_title}"
        if not wants_email(client, 'invoice'):
            result = {'success': True, 'skipped': True}
        else:
            result = self.email_service.send_invoice_notification(
                client.email, client.name, invoice.id, invoice.number, project_title,
                invoice.amount, invoice.currency, invoice.due_date.strftime('%d %B %Y'),
                invoice.description
            )
        log_email(self.session, client.email, 'INVOICE_CREATED', subject, result, client.id)
        return result

    def on_new_chat_message(self, message_id: str) -> Dict[str, Any]:
        message = self.session.query(Message).filter(Message.id == message_id).first()
        if not message:
            logger.error(f"Chat email: message {message_id} not found")
            return {'success': False, 'error': 'Message not found'}

        recipient = message.receiver
        if recipient is None:
            if message.sender.role == 'ADMIN':
                recipient = message.project.client
            else:
                recipient = self.session.query(User).filter(User.role == 'ADMIN').order_by(
                    User.created_at).first()
        if not recipient:
            return {'success': False, 'error': 'Recipient not found'}

        if is_recently_active(recipient):
            logger.debug(f"Recipient {recipient.id} is online, chat email skipped")
            return {'success': True, 'skipped': True}

        project = message.project
        subject = f"New message in {project.title}"
        if not wants_email(recipient, 'chat'):
            result = {'success': True, 'skipped': True}
        else:
            result = self.email_service.send_chat_notification(
                recipient.email, recipient.name, message.sender.name,
                project.id, project.title, message.content[:200]
            )
        log_email(self.session, recipient.email, 'CHAT_MESSAGE', subject, result, recipient.id)
        return result

    def on_invoice_reminder(self, invoice_id: str, is_overdue: bool = False,
                            now: datetime = None) -> Dict[str, Any]:
        """
        Send one reminder and bump the invoice's reminder bookkeeping.

        PAID invoices are skipped without writing anything.
        """
        now = now or datetime.utcnow()
        invoice = self.session.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice or not invoice.client:
            logger.error(f"Invoice reminder: invoice {invoice_id} or its client not found")
            return {'success': False, 'error': 'Invoice or client not found'}

        if invoice.status == 'PAID':
            logger.info(f"Invoice {invoice.number} already paid, reminder skipped")
            return {'success': True, 'skipped': True}

        client = invoice.client
        subject = (f"Overdue Invoice: {invoice.number}" if is_overdue
                   else f"Payment Reminder: {invoice.number}")
        if not wants_email(client, 'invoice'):
            result = {'success': True, 'skipped': True}
        else:
            result = self.email_service.send_invoice_reminder(
                client.email, client.name, invoice.id, invoice.number,
                invoice.project.title if invoice.project else '',
                invoice.amount, invoice.currency, invoice.due_date.strftime('%d %B %Y'),
                is_overdue, days_overdue=max((now - invoice.due_date).days, 0)
            )

        invoice.last_reminder_sent = now
        invoice.reminder_count = (invoice.reminder_count or 0) + 1
        if is_overdue and invoice.status == 'PENDING':
            invoice.status = 'OVERDUE'

        log_email(self.session, client.email,
                  'INVOICE_OVERDUE' if is_overdue else 'INVOICE_REMINDER',
                  subject, result, client.id)
        return result


def _run_hook(session, email_service, hook: str, *args, **kwargs):
    return getattr(EmailHooks(session, email_service), hook)(*args, **kwargs)


def schedule_hook(tasks, email_service, hook: str, *args, **kwargs):
    """Register ``EmailHooks.<hook>`` to run after commit in its own session."""
    if tasks is None or email_service is None:
        logger.debug(f"No task collector or email service, {hook} not scheduled")
        return
    tasks.add(f"email hook {hook}", in_session, _run_hook, email_service, hook, *args, **kwargs)
