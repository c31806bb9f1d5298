"""
Cron Routes Blueprint

Called by the scheduler with ``Authorization: Bearer <CRON_SECRET>``.
"""

import hmac
from functools import wraps

from flask import Blueprint, request, jsonify, current_app
import logging

from app.utils.helpers import get_extension
from config import is_production
from database.connection import get_db_session
from services.csrf import csrf
from services.invoice_reminders import InvoiceReminderService

logger = logging.getLogger(__name__)

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')
csrf.exempt(cron_bp)


def cron_secret_required(f):
    """Bearer CRON_SECRET; open without a secret outside production"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        secret = current_app.config.get('CRON_SECRET')
        if not secret:
            if is_production():
                logger.error("CRON_SECRET is not configured, refusing cron call")
                return jsonify({'success': False, 'error': 'Unauthorized'}), 401
            return f(*args, **kwargs)

        header = request.headers.get('Authorization', '')
        if not hmac.compare_digest(header, f"Bearer {secret}"):
            logger.warning(f"Rejected cron call to {request.path}")
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


@cron_bp.route('/process-email-queue', methods=['GET', 'POST'])
@cron_secret_required
def process_email_queue():
    queue = get_extension('email_queue')
    before = queue.status()
    result = queue.process()
    logger.info(f"Email queue processed: {result} (was {before['total']} queued)")
    return jsonify({'success': True, **result, 'remaining': queue.status()})


@cron_bp.route('/invoice-reminders', methods=['GET', 'POST'])
@cron_secret_required
def invoice_reminders():
    with get_db_session() as db:
        result = InvoiceReminderService(db, get_extension('email_service')).process_pending()
    logger.info(f"Invoice reminders processed: {result}")
    return jsonify({'success': True, **result})
