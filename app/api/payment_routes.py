"""
Payment Routes Blueprint

Snap checkout for invoices, explicit status checks and the gateway webhook.
"""

from flask import Blueprint, jsonify, current_app
import logging

from auth import login_required
from app.utils.helpers import get_json_body, get_extension, get_tasks, get_current_user
from database.connection import get_db_session
from services.csrf import csrf
from services.payment_service import PaymentService
from services.rate_limiter import payment_limit

logger = logging.getLogger(__name__)

payment_bp = Blueprint('payment', __name__, url_prefix='/api/payment')
payment_limit(payment_bp)


def payment_service(db) -> PaymentService:
    return PaymentService(
        db,
        gateway=get_extension('payment_gateway'),
        email_queue=get_extension('email_queue'),
        tasks=get_tasks(),
        app_url=current_app.config['APP_URL'],
        currency=current_app.config.get('PAYMENT_CURRENCY', 'IDR')
    )


@payment_bp.route('/create-token', methods=['POST'])
@csrf.exempt
@login_required
def create_token():
    """Start checkout for one of the caller's pending invoices"""
    data = get_json_body()
    with get_db_session() as db:
        result = payment_service(db).create_token(get_current_user(), data.get('invoiceId'))
    return jsonify(result)


@payment_bp.route('/check-status', methods=['POST'])
@login_required
def check_status():
    data = get_json_body()
    with get_db_session() as db:
        result = payment_service(db).check_status(get_current_user(), data.get('orderId'))
    return jsonify(result)


@payment_bp.route('/webhook', methods=['POST'])
@csrf.exempt
def webhook():
    """
    Gateway notification receiver

    Signature failures answer 400 and unknown orders 404 so the gateway
    can tell a bad delivery apart from a server problem.
    """
    notification = get_json_body()
    logger.info(f"Payment webhook for order {notification.get('order_id')}: "
                f"{notification.get('transaction_status')}")
    with get_db_session() as db:
        result = payment_service(db).handle_webhook(
            notification, current_app.config.get('MIDTRANS_SERVER_KEY')
        )
    return jsonify(result)
