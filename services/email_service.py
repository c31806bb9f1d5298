"""
Email Service - transactional email for the portal.

This service handles:
- Rendering the Jinja2 templates in services/email_templates.py
- Sending through the Resend API client
- Honouring the EMAIL_ENABLED switch

Every send_* method returns a result dict instead of raising:
``{'success': True, 'skipped': True}`` when email is disabled and the caller
asked to skip, ``{'success': True, 'id': ...}`` on delivery and
``{'success': False, 'error': ...}`` on failure.
"""

import logging
from typing import Dict, Any, Optional, Callable

from services.email_client import ResendClient
from services.email_templates import render_template, format_currency
from services.errors import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_SENDER = 'WMX Services <noreply@wmx-services.dev>'


class EmailService:
    """Renders and sends transactional emails."""

    def __init__(self, api_key: str = None, sender: str = None, enabled: bool = False,
                 app_url: str = 'http://localhost:5000', client: ResendClient = None,
                 timeout: int = 15):
        self.sender = sender or DEFAULT_SENDER
        self.app_url = app_url.rstrip('/')
        self.client = client or (ResendClient(api_key, timeout=timeout) if api_key else None)
        self.enabled = bool(enabled and self.client)

    @classmethod
    def from_config(cls, config) -> 'EmailService':
        return cls(
            api_key=config.get('RESEND_API_KEY'),
            sender=config.get('EMAIL_FROM'),
            enabled=config.get('EMAIL_ENABLED', False),
            app_url=config.get('APP_URL', 'http://localhost:5000'),
            timeout=config.get('EMAIL_TIMEOUT', 15),
        )

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def _deliver(self, kind: str, to: str, subject: str, template: str,
                 skip_if_disabled: bool, **context) -> Dict[str, Any]:
        if not self.enabled and skip_if_disabled:
            logger.info(f"Email disabled, skipping {kind} email to {to}")
            return {'success': True, 'skipped': True}

        if not self.client:
            logger.warning(f"Email not configured, cannot send {kind} email to {to}")
            return {'success': False, 'error': 'Email is not configured'}

        try:
            html = render_template(template, subject=subject, **context)
            result = self.client.send(self.sender, to, subject, html)
            logger.info(f"Sent {kind} email to {to}")
            return {'success': True, 'id': result.get('id')}
        except ServiceError as e:
            return {'success': False, 'error': e.message}
        except Exception as e:
            logger.error(f"Failed to send {kind} email to {to}: {e}", exc_info=True)
            return {'success': False, 'error': str(e)}

    # =========================================================================
    # ACCOUNT EMAILS
    # =========================================================================

    def send_welcome(self, to: str, name: str, skip_if_disabled: bool = True) -> Dict[str, Any]:
        return self._deliver(
            'welcome', to, "Welcome to WMX Services!", 'welcome.html', skip_if_disabled,
            name=name or 'there', dashboard_url=f"{self.app_url}/client/dashboard"
        )

    def send_verification_code(self, to: str, name: str, code: str, expires_minutes: int = 10,
                               skip_if_disabled: bool = False) -> Dict[str, Any]:
        return self._deliver(
            'verification', to, f"Your verification code: {code}", 'verification_code.html',
            skip_if_disabled, name=name or 'there', code=code, expires_minutes=expires_minutes
        )

    def send_password_reset(self, to: str, name: str, token: str,
                            skip_if_disabled: bool = False) -> Dict[str, Any]:
        return self._deliver(
            'password reset', to, "Reset your WMX Services password", 'password_reset.html',
            skip_if_disabled, name=name or 'there',
            reset_url=f"{self.app_url}/auth/reset-password?token={token}"
        )

    def send_magic_link(self, to: str, token: str, skip_if_disabled: bool = False) -> Dict[str, Any]:
        return self._deliver(
            'magic link', to, "Sign in to WMX Services", 'magic_link.html', skip_if_disabled,
            sign_in_url=f"{self.app_url}/api/auth/magic-link/callback?token={token}"
        )

    # =========================================================================
    # PROJECT & CHAT EMAILS
    # =========================================================================

    def send_project_status(self, to: str, client_name: str, project_id: str, project_title: str,
                            old_status: str, new_status: str, progress: int,
                            message: str = None, skip_if_disabled: bool = True) -> Dict[str, Any]:
        return self._deliver(
            'project status', to, f"Project Update: {project_title}", 'project_status.html',
            skip_if_disabled, client_name=client_name or 'there', project_title=project_title,
            old_status=old_status, new_status=new_status, progress=progress, message=message,
            project_url=f"{self.app_url}/client/projects/{project_id}"
        )

    def send_chat_notification(self, to: str, recipient_name: str, sender_name: str,
                               project_id: str, project_title: str, message_preview: str,
                               skip_if_disabled: bool = True) -> Dict[str, Any]:
        return self._deliver(
            'chat notification', to, f"New message in {project_title}", 'chat_notification.html',
            skip_if_disabled, recipient_name=recipient_name or 'there',
            sender_name=sender_name or 'WMX Services', project_title=project_title,
            message_preview=message_preview,
            chat_url=f"{self.app_url}/client/projects/{project_id}?tab=chat"
        )

    # =========================================================================
    # BILLING EMAILS
    # =========================================================================

    def send_invoice_notification(self, to: str, client_name: str, invoice_id: str,
                                  invoice_number: str, project_title: str, amount: float,
                                  currency: str, due_date: str, description: str = None,
                                  skip_if_disabled: bool = True) -> Dict[str, Any]:
        return self._deliver(
            'invoice', to, f"New Invoice: {invoice_number} - {project_title}",
            'invoice_notification.html', skip_if_disabled,
            client_name=client_name or 'there', invoice_number=invoice_number,
            project_title=project_title, amount=format_currency(amount, currency),
            due_date=due_date, description=description,
            payment_url=f"{self.app_url}/client/payment?invoice={invoice_id}"
        )

    def send_invoice_reminder(self, to: str, client_name: str, invoice_id: str,
                              invoice_number: str, project_title: str, amount: float,
                              currency: str, due_date: str, is_overdue: bool,
                              days_overdue: int = 0, skip_if_disabled: bool = True) -> Dict[str, Any]:
        subject = (f"Overdue Invoice: {invoice_number}" if is_overdue
                   else f"Payment Reminder: {invoice_number}")
        return self._deliver(
            'invoice reminder', to, subject, 'invoice_reminder.html', skip_if_disabled,
            client_name=client_name or 'there', invoice_number=invoice_number,
            project_title=project_title, amount=format_currency(amount, currency),
            due_date=due_date, is_overdue=is_overdue, days_overdue=days_overdue,
            payment_url=f"{self.app_url}/client/payment?invoice={invoice_id}"
        )

    def send_payment_confirmation(self, to: str, client_name: str, invoice_number: str,
                                  project_title: str, amount: float, currency: str,
                                  payment_method: str, paid_date: str,
                                  skip_if_disabled: bool = True) -> Dict[str, Any]:
        return self._deliver(
            'payment confirmation', to, f"Payment Confirmed: {invoice_number}",
            'payment_confirmation.html', skip_if_disabled,
            client_name=client_name or 'there', invoice_number=invoice_number,
            project_title=project_title, amount=format_currency(amount, currency),
            payment_method=payment_method or 'Online payment', paid_date=paid_date,
            dashboard_url=f"{self.app_url}/client/dashboard"
        )

    # =========================================================================
    # QUEUE DISPATCH
    # =========================================================================

    def handler_for(self, email_type: str) -> Optional[Callable[..., Dict[str, Any]]]:
        """Map a queue item type to its send method."""
        return {
            'welcome': self.send_welcome,
            'verification_code': self.send_verification_code,
            'password_reset': self.send_password_reset,
            'magic_link': self.send_magic_link,
            'project_status': self.send_project_status,
            'chat_notification': self.send_chat_notification,
            'invoice_notification': self.send_invoice_notification,
            'invoice_reminder': self.send_invoice_reminder,
            'payment_confirmation': self.send_payment_confirmation,
        }.get(email_type)

    def dispatch(self, email_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Send a queued email. Unknown types fail without raising."""
        handler = self.handler_for(email_type)
        if handler is None:
            logger.warning(f"Unknown email type: {email_type}")
            return {'success': False, 'error': f"Unknown email type: {email_type}"}
        try:
            return handler(**data)
        except TypeError as e:
            logger.error(f"Bad payload for {email_type} email: {e}")
            return {'success': False, 'error': str(e)}
