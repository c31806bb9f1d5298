"""
Application Initialization Module
Initializes the Flask app with database, integrations, security and routes
"""
import os
from flask import Flask, g
from config import get_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
from auth import refresh_session_role
from database.connection import configure_database, init_db
from services.background import BackgroundTasks, create_executor
from services.email_queue import EmailQueue
from services.email_service import EmailService
from services.payment_gateway import MidtransClient
from services.security_monitor import SecurityMonitor
from services.storage_service import StorageService
from services.typing_tracker import TypingTracker
import logging

logger = logging.getLogger(__name__)


def create_app(config_class=None, **overrides):
    """
    Application factory that creates and configures the Flask app

    Args:
        config_class: Config class to load (defaults to the one FLASK_ENV selects)
        overrides: Individual config values applied after the class

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    app.config.from_object(config_class or get_config())
    app.config.update(overrides)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("🚀 Initializing WMX Services")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    configure_database(app.config['DATABASE_URL'])
    if app.testing:
        init_db()

    initialize_extensions(app)

    # Role refresh must run before the guards so they see the current role
    app.before_request(refresh_session_role)
    setup_security(app, app.config)
    setup_background_tasks(app)

    from app import register_blueprints
    register_blueprints(app)
    register_health_checks(app)

    logger.info("✅ Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_payment_gateway(app):
    server_key = app.config.get('MIDTRANS_SERVER_KEY')
    if not server_key:
        logger.warning("⚠️  MIDTRANS_SERVER_KEY not set - payment endpoints disabled")
        return None
    logger.info(f"✅ Midtrans initialized ({'production' if app.config.get('MIDTRANS_IS_PRODUCTION') else 'sandbox'})")
    return MidtransClient(server_key, is_production=app.config.get('MIDTRANS_IS_PRODUCTION', False))


def initialize_extensions(app):
    """
    Build the shared integrations and in-memory stores.

    Everything lives on app.extensions so tests can swap in fakes.
    """
    email_service = EmailService.from_config(app.config)
    if not email_service.enabled:
        logger.warning("⚠️  Email sending disabled - set EMAIL_ENABLED=true and RESEND_API_KEY")

    app.extensions['email_service'] = email_service
    app.extensions['email_queue'] = EmailQueue(email_service)
    app.extensions['storage'] = StorageService.from_config(app.config)
    app.extensions['payment_gateway'] = initialize_payment_gateway(app)
    app.extensions['executor'] = create_executor(app)
    app.extensions['typing_tracker'] = TypingTracker()
    app.extensions['security_monitor'] = (
        SecurityMonitor() if app.config.get('SECURITY_MONITOR_ENABLED') else None
    )


def setup_background_tasks(app):
    """
    Give every request a BackgroundTasks collector.

    Tasks run once the view returned (its unit of work has committed) and
    are dropped when the request failed.
    """
    @app.before_request
    def start_background_tasks():
        g.tasks = BackgroundTasks(app.extensions.get('executor'))

    @app.after_request
    def run_background_tasks(response):
        tasks = g.pop('tasks', None)
        if tasks is None:
            return response
        if response.status_code < 400:
            tasks.run()
        else:
            tasks.discard()
        return response
