"""
Payment Service - invoice checkout and gateway reconciliation.

This service handles:
- Creating Snap transactions for PENDING invoices
- Mapping gateway transaction states to payment/invoice states
- Idempotent reconciliation from webhooks and explicit status checks

Reconciliation writes only when the mapped payment status differs from the
stored one, so a re-delivered notification sends no second email and
creates no second admin notification.
"""

import logging
import time
from datetime import datetime
from typing import Dict, Any, Optional

from dateutil import parser as date_parser

from database.models import Invoice, Payment
from services.access import require_user, is_admin
from services.activity_logger import ActivityLogger
from services.email_templates import format_currency
from services.errors import ValidationError, NotFoundError, PermissionDenied, ServiceUnavailable
from services.notification_service import NotificationService
from services.payment_gateway import verify_signature

logger = logging.getLogger(__name__)

# gateway transaction_status -> (payment status, invoice status or None to leave it).
# Only a completed payment moves the invoice; a refund leaves it as recorded.
STATUS_MAP = {
    'capture': ('COMPLETED', 'PAID'),
    'settlement': ('COMPLETED', 'PAID'),
    'pending': ('PENDING', None),
    'deny': ('FAILED', None),
    'cancel': ('FAILED', None),
    'expire': ('FAILED', None),
    'refund': ('REFUNDED', None),
}


def map_status(transaction_status: str):
    """Return (payment_status, invoice_status) for a gateway transaction status."""
    return STATUS_MAP.get((transaction_status or '').lower(), ('PROCESSING', None))


def split_name(name: Optional[str]):
    parts = (name or '').split()
    if not parts:
        return 'Customer', ''
    return parts[0], ' '.join(parts[1:])


class PaymentService:
    """Checkout and reconciliation for invoices."""

    def __init__(self, session, gateway=None, email_queue=None, tasks=None,
                 app_url: str = 'http://localhost:5000', currency: str = 'IDR'):
        self.session = session
        self.gateway = gateway
        self.email_queue = email_queue
        self.tasks = tasks
        self.app_url = app_url.rstrip('/')
        self.currency = currency

    def _require_gateway(self):
        if self.gateway is None:
            raise ServiceUnavailable("Payment gateway is not configured")
        return self.gateway

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def build_transaction(self, invoice: Invoice, order_id: str, user_id: str) -> Dict[str, Any]:
        amount = int(round(invoice.amount))
        first_name, last_name = split_name(invoice.client.name if invoice.client else None)
        project_title = invoice.project.title if invoice.project else 'Project'
        payment_page = f"{self.app_url}/client/payment"
        return {
            'transaction_details': {
                'order_id': order_id,
                'gross_amount': amount,
            },
            'customer_details': {
                'first_name': first_name,
                'last_name': last_name,
                'email': invoice.client.email if invoice.client else None,
            },
            'item_details': [{
                'id': invoice.id,
                'name': f"{project_title} - {invoice.number}",
                'price': amount,
                'quantity': 1,
                'category': 'Digital Service',
            }],
            'callbacks': {
                'finish': f"{payment_page}?status=success&invoice={invoice.id}",
                'error': f"{payment_page}?status=error&invoice={invoice.id}",
                'pending': f"{payment_page}?status=pending&invoice={invoice.id}",
            },
            'custom_field1': f"{self.app_url}/api/payment/webhook",
            'custom_field2': invoice.id,
            'custom_field3': user_id,
        }

    def create_token(self, user: Dict, invoice_id: str) -> Dict[str, Any]:
        """
        Start checkout for one of the caller's PENDING invoices.

        Returns:
            {'token', 'redirect_url', 'orderId'}
        """
        require_user(user)
        if not invoice_id:
            raise ValidationError("Invoice ID is required")
        gateway = self._require_gateway()

        invoice = self.session.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.client_id == user['id'],
            Invoice.status == 'PENDING'
        ).first()
        if not invoice:
            raise NotFoundError("Invoice not found or already paid")

        order_id = f"WMX-{invoice.number}-{int(time.time() * 1000)}"
        transaction = gateway.create_transaction(self.build_transaction(invoice, order_id, user['id']))

        payment = Payment(
            invoice_id=invoice.id,
            user_id=user['id'],
            amount=invoice.amount,
            status='PENDING',
            midtrans_order_id=order_id,
            midtrans_token=transaction.get('token')
        )
        self.session.add(payment)
        self.session.flush()

        logger.info(f"Payment {payment.id} created for invoice {invoice.number} (order {order_id})")
        return {
            'token': transaction.get('token'),
            'redirect_url': transaction.get('redirect_url'),
            'orderId': order_id,
        }

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile(self, payment: Payment, gateway_status: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a gateway status to a payment and its invoice.

        Returns:
            {'updated', 'paymentStatus', 'invoiceStatus'}
        """
        payment_status, invoice_status = map_status(gateway_status.get('transaction_status'))
        invoice = payment.invoice

        if payment.status == payment_status:
            logger.info(f"Payment {payment.id} already {payment_status}, nothing to do")
            return {'updated': False, 'paymentStatus': payment.status, 'invoiceStatus': invoice.status}

        logger.info(f"Payment {payment.id} status {payment.status} -> {payment_status}")
        payment.status = payment_status
        payment.payment_method = gateway_status.get('payment_type') or payment.payment_method
        payment.transaction_id = gateway_status.get('transaction_id') or payment.transaction_id

        if payment_status == 'COMPLETED':
            paid_at = self._paid_at(gateway_status)
            payment.paid_at = paid_at
            invoice.status = invoice_status
            invoice.paid_at = paid_at
            self.session.flush()
            self._on_completed(payment, invoice)
        else:
            payment.paid_at = None
            self.session.flush()

        return {'updated': True, 'paymentStatus': payment.status, 'invoiceStatus': invoice.status}

    @staticmethod
    def _paid_at(gateway_status: Dict[str, Any]) -> datetime:
        value = gateway_status.get('settlement_time') or gateway_status.get('transaction_time')
        if value:
            try:
                return date_parser.parse(value).replace(tzinfo=None)
            except (ValueError, OverflowError):
                logger.warning(f"Unparseable gateway time {value!r}, using now")
        return datetime.utcnow()

    def _on_completed(self, payment: Payment, invoice: Invoice):
        client = invoice.client
        project_title = invoice.project.title if invoice.project else 'project'

        if client and self.email_queue is not None:
            email_data = {
                'to': client.email,
                'client_name': client.name,
                'invoice_number': invoice.number,
                'project_title': project_title,
                'amount': invoice.amount,
                'currency': invoice.currency or self.currency,
                'payment_method': payment.payment_method,
                'paid_date': payment.paid_at.strftime('%d %B %Y'),
            }
            if self.tasks is not None:
                self.tasks.add('queue payment confirmation', self.email_queue.add,
                               'payment_confirmation', email_data, priority='high')
            else:
                self.email_queue.add('payment_confirmation', email_data, priority='high')

        NotificationService(self.session).notify_admins(
            title="Payment Received",
            message=(f"{client.name if client else 'Client'} has successfully paid invoice "
                     f"{invoice.number} for {project_title} - "
                     f"{format_currency(invoice.amount, invoice.currency or self.currency)}"),
            notification_type='SUCCESS',
            entity_type='INVOICE',
            entity_id=invoice.id,
            action_url=f"/admin/invoices?invoice={invoice.id}"
        )
        ActivityLogger(self.session, payment.user_id).log(
            'PAYMENT_RECEIVED',
            description=f"Payment received for invoice {invoice.number}",
            project_id=invoice.project_id,
            metadata={'invoice_id': invoice.id, 'payment_id': payment.id, 'amount': invoice.amount}
        )

    def _get_payment(self, order_id: str) -> Payment:
        payment = self.session.query(Payment).filter(Payment.midtrans_order_id == order_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def check_status(self, user: Dict, order_id: str) -> Dict[str, Any]:
        """Re-read the gateway status for one of the caller's payments."""
        require_user(user)
        if not order_id:
            raise ValidationError("Order ID is required")
        gateway = self._require_gateway()

        payment = self._get_payment(order_id)
        if payment.invoice.client_id != user['id'] and not is_admin(user):
            raise PermissionDenied("Access denied")

        gateway_status = gateway.get_status(order_id)
        result = self.reconcile(payment, gateway_status)

        return {
            'orderId': order_id,
            'midtransStatus': gateway_status.get('transaction_status'),
            'paymentStatus': result['paymentStatus'],
            'invoiceStatus': result['invoiceStatus'],
            'updated': result['updated'],
            'paidAt': payment.paid_at.isoformat() if payment.paid_at else None,
            'transactionId': payment.transaction_id,
        }

    def handle_webhook(self, notification: Dict[str, Any], server_key: str) -> Dict[str, Any]:
        """
        Verify a gateway notification, then reconcile from the Core API status.

        The notification body is only trusted for its order id; the status
        applied is the one the gateway returns on a fresh lookup.
        """
        if not isinstance(notification, dict) or not verify_signature(notification, server_key):
            logger.warning("Rejected payment webhook with an invalid signature")
            raise ValidationError("Invalid signature")

        order_id = notification['order_id']
        payment = self._get_payment(order_id)
        gateway_status = self._require_gateway().get_status(order_id)
        result = self.reconcile(payment, gateway_status)

        logger.info(f"Webhook processed for {order_id}: "
                    f"{gateway_status.get('transaction_status')} -> {result['paymentStatus']}")
        return {'message': 'Webhook processed successfully', 'status': result['paymentStatus']}
