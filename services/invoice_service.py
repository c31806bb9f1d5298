"""
Invoice Service - invoices, manual payments and billing statistics.

Invoices are never hard-deleted: deleting one sets it CANCELLED, and a PAID
invoice cannot be cancelled.
"""

import logging
from datetime import datetime
from typing import Dict, List, Any

from sqlalchemy import func

from database.models import Invoice, Payment, Project, INVOICE_STATUSES
from services.access import require_admin, require_user, get_invoice_for_user
from services.activity_logger import ActivityLogger
from services.email_hooks import schedule_hook
from services.email_templates import format_currency
from services.errors import ValidationError, NotFoundError
from services.invoice_reminders import InvoiceReminderService
from services.notification_service import NotificationService
from validators import validate_choice, parse_datetime

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    'PAID': "Your invoice has been marked as paid. Thank you!",
    'CANCELLED': "Your invoice has been cancelled.",
    'OVERDUE': "Your invoice is now overdue. Please make payment as soon as possible.",
    'PENDING': "Your invoice status has been updated to pending.",
    'DRAFT': "Your invoice is now in draft status.",
}
STATUS_NOTIFICATION_TYPES = {'PAID': 'SUCCESS', 'OVERDUE': 'WARNING'}


def next_invoice_number(session) -> str:
    """``INV-0001`` style, one past the current invoice count."""
    n = (session.query(func.count(Invoice.id)).scalar() or 0) + 1
    number = f"INV-{n:04d}"
    while session.query(Invoice.id).filter(Invoice.number == number).first():
        n += 1
        number = f"INV-{n:04d}"
    return number


def _positive_amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a number")
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    return amount


class InvoiceService:

    def __init__(self, session, user: Dict, tasks=None, email_service=None):
        self.session = session
        self.user = user
        self.tasks = tasks
        self.email_service = email_service

    def _get(self, invoice_id: str) -> Invoice:
        invoice = self.session.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    @staticmethod
    def _serialize(invoice: Invoice, include_client: bool = False) -> Dict:
        data = invoice.to_dict(include_project=True, include_payments=True)
        data['payments'].sort(key=lambda p: p['created_at'] or '', reverse=True)
        if include_client and invoice.client:
            data['client'] = {'id': invoice.client.id, 'name': invoice.client.name,
                              'email': invoice.client.email}
        return data

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_client_invoices(self) -> List[Dict]:
        require_user(self.user)
        invoices = self.session.query(Invoice).filter(
            Invoice.client_id == self.user['id']
        ).order_by(Invoice.created_at.desc()).all()
        return [self._serialize(inv) for inv in invoices]

    def get_invoice_by_id(self, invoice_id: str) -> Dict:
        invoice = get_invoice_for_user(self.session, invoice_id, self.user)
        return self._serialize(invoice, include_client=True)

    def get_invoice_details(self, invoice_id: str) -> Dict:
        invoice = get_invoice_for_user(self.session, invoice_id, self.user)
        data = self._serialize(invoice, include_client=True)
        if invoice.project:
            data['project'] = {
                'id': invoice.project.id,
                'title': invoice.project.title,
                'description': invoice.project.description,
                'status': invoice.project.status,
            }
        return data

    def get_all_invoices(self) -> List[Dict]:
        require_admin(self.user)
        invoices = self.session.query(Invoice).order_by(Invoice.created_at.desc()).all()
        result = []
        for invoice in invoices:
            data = self._serialize(invoice, include_client=True)
            data['paymentCount'] = len(invoice.payments)
            result.append(data)
        return result

    def get_payment_stats(self, now: datetime = None) -> Dict[str, Any]:
        require_admin(self.user)
        now = now or datetime.utcnow()
        count = lambda *criteria: self.session.query(func.count(Invoice.id)).filter(*criteria).scalar() or 0

        revenue = self.session.query(func.sum(Payment.amount)).filter(Payment.status == 'COMPLETED').scalar()
        pending_amount = self.session.query(func.sum(Invoice.amount)).filter(Invoice.status == 'PENDING').scalar()
        return {
            'totalInvoices': count(),
            'paidInvoices': count(Invoice.status == 'PAID'),
            'pendingInvoices': count(Invoice.status == 'PENDING'),
            'overdueInvoices': count(Invoice.status.in_(('PENDING', 'OVERDUE')), Invoice.due_date < now),
            'totalRevenue': revenue or 0,
            'pendingAmount': pending_amount or 0,
        }

    # =========================================================================
    # MUTATIONS (admin)
    # =========================================================================

    def create_invoice(self, data: Dict[str, Any]) -> Dict:
        """
        Create a PENDING invoice, notify the client in-app and by email.
        """
        require_admin(self.user)
        project = self.session.query(Project).filter(Project.id == data.get('projectId')).first()
        if not project:
            raise NotFoundError("Project not found")
        client_id = data.get('clientId') or project.client_id
        due_date = parse_datetime(data.get('dueDate'), 'dueDate')
        if due_date is None:
            raise ValidationError("dueDate is required")

        invoice = Invoice(
            number=next_invoice_number(self.session),
            project_id=project.id,
            client_id=client_id,
            amount=_positive_amount(data.get('amount')),
            currency=data.get('currency') or 'IDR',
            description=data.get('description'),
            items=data.get('items') or [],
            due_date=due_date,
            status='PENDING'
        )
        self.session.add(invoice)
        self.session.flush()

        NotificationService(self.session).create_notification(
            client_id,
            "New Invoice Created",
            (f"You have received a new invoice {invoice.number} for {project.title}. "
             f"Amount: {format_currency(invoice.amount, invoice.currency)}"),
            notification_type='PAYMENT',
            entity_type='INVOICE',
            entity_id=invoice.id,
            action_url=f"/client/payment?invoice={invoice.id}"
        )
        ActivityLogger(self.session, self.user['id']).log(
            'INVOICE_CREATED',
            description=f"Invoice {invoice.number} created for {project.title}",
            project_id=project.id,
            metadata={'invoice_id': invoice.id, 'amount': invoice.amount}
        )
        schedule_hook(self.tasks, self.email_service, 'on_invoice_created', invoice.id)

        logger.info(f"Created invoice {invoice.number} for client {client_id}")
        return self._serialize(invoice, include_client=True)

    def update_invoice(self, data: Dict[str, Any]) -> Dict:
        require_admin(self.user)
        invoice = self._get(data.get('id'))
        old_status = invoice.status

        if data.get('amount') is not None:
            invoice.amount = _positive_amount(data['amount'])
        if data.get('currency'):
            invoice.currency = data['currency']
        if 'description' in data:
            invoice.description = data['description']
        if 'items' in data:
            invoice.items = data['items'] or []
        if data.get('dueDate'):
            invoice.due_date = parse_datetime(data['dueDate'], 'dueDate')
        if data.get('status'):
            invoice.status = validate_choice(data['status'], INVOICE_STATUSES, 'status')
            if invoice.status == 'PAID' and not invoice.paid_at:
                invoice.paid_at = datetime.utcnow()
        self.session.flush()

        if data.get('status'):
            NotificationService(self.session).create_notification(
                invoice.client_id,
                "Invoice Status Updated",
                f"Invoice {invoice.number}: {STATUS_MESSAGES[invoice.status]}",
                notification_type=STATUS_NOTIFICATION_TYPES.get(invoice.status, 'INFO'),
                entity_type='INVOICE',
                entity_id=invoice.id,
                action_url=f"/client/payment?invoice={invoice.id}"
            )
        if invoice.status != old_status:
            logger.info(f"Invoice {invoice.number} status {old_status} -> {invoice.status}")
        return self._serialize(invoice, include_client=True)

    def delete_invoice(self, invoice_id: str) -> Dict:
        """Soft delete: the invoice becomes CANCELLED."""
        require_admin(self.user)
        invoice = self._get(invoice_id)
        if invoice.status == 'PAID':
            raise ValidationError("Cannot delete a paid invoice")

        invoice.status = 'CANCELLED'
        self.session.flush()
        project_title = invoice.project.title if invoice.project else 'your project'
        NotificationService(self.session).create_notification(
            invoice.client_id,
            "Invoice Cancelled",
            f"Invoice {invoice.number} for {project_title} has been cancelled.",
            notification_type='INFO',
            entity_type='INVOICE',
            entity_id=invoice.id
        )
        logger.info(f"Cancelled invoice {invoice.number}")
        return self._serialize(invoice)

    def record_payment(self, data: Dict[str, Any]) -> Dict:
        """Record a payment received outside the gateway; the invoice becomes PAID."""
        require_admin(self.user)
        invoice = self._get(data.get('invoiceId'))
        if invoice.status == 'CANCELLED':
            raise ValidationError("Cannot record a payment for a cancelled invoice")

        now = datetime.utcnow()
        payment = Payment(
            invoice_id=invoice.id,
            user_id=invoice.client_id,
            amount=_positive_amount(data.get('amount', invoice.amount)),
            status='COMPLETED',
            payment_method=data.get('paymentMethod'),
            transaction_id=data.get('transactionId'),
            midtrans_order_id=data.get('midtransOrderId'),
            paid_at=now
        )
        self.session.add(payment)
        invoice.status = 'PAID'
        invoice.paid_at = now
        self.session.flush()

        NotificationService(self.session).create_notification(
            invoice.client_id,
            "Payment Successful",
            f"Your payment for invoice {invoice.number} has been processed successfully. Thank you!",
            notification_type='SUCCESS',
            entity_type='PAYMENT',
            entity_id=invoice.id,
            action_url=f"/client/payment?invoice={invoice.id}"
        )
        ActivityLogger(self.session, self.user['id']).log(
            'INVOICE_PAID',
            description=f"Payment recorded for invoice {invoice.number}",
            project_id=invoice.project_id,
            metadata={'invoice_id': invoice.id, 'payment_id': payment.id, 'amount': payment.amount}
        )
        return payment.to_dict()

    def send_reminders(self, invoice_id: str = None, check_overdue: bool = False) -> Dict[str, Any]:
        require_admin(self.user)
        if self.email_service is None:
            raise ValidationError("Email is not configured")
        summary = InvoiceReminderService(self.session, self.email_service).send_for_selection(
            invoice_id=invoice_id, check_overdue=check_overdue
        )
        return {
            'success': True,
            'totalInvoices': summary['total'],
            'sentCount': summary['successful'],
            'skippedCount': summary['skipped'],
            'failedCount': summary['failed'],
        }
