"""
WMX Services - Application Package

This package contains the modular backend structure:
- api/: HTTP route handlers (Flask Blueprints)
- rpc/: Domain routers served by the RPC blueprint
- utils/: Shared request helpers

The app factory and core Flask setup remain in app_init.py at the project root.
Business logic lives in the top-level services/ package.
"""

import logging

logger = logging.getLogger(__name__)

from app.api.auth_routes import auth_bp
from app.api.payment_routes import payment_bp
from app.api.upload_routes import upload_bp
from app.api.portfolio_routes import portfolio_bp
from app.api.security_routes import security_bp
from app.api.cron_routes import cron_bp
from app.api.rpc_routes import rpc_bp

BLUEPRINTS = [auth_bp, payment_bp, upload_bp, portfolio_bp, security_bp, cron_bp, rpc_bp]


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from app_init.create_app after the extensions are initialized.

    Args:
        app: Flask application instance
    """
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info(f"Registered {len(BLUEPRINTS)} blueprints")


__all__ = ['register_blueprints', 'app', 'auth_bp', 'payment_bp', 'upload_bp', 'portfolio_bp',
           'security_bp', 'cron_bp', 'rpc_bp']


# ==============================================================================
# WSGI APP EXPORT FOR GUNICORN
# ==============================================================================
# This allows gunicorn to run with: gunicorn app:app
# The Flask app is created in application.py.
# We use __getattr__ for lazy loading to avoid circular import issues.
# ==============================================================================

_flask_app = None


def __getattr__(name):
    """Lazy load the Flask app to avoid circular imports."""
    global _flask_app
    if name == 'app':
        if _flask_app is None:
            from application import app as flask_app
            _flask_app = flask_app
        return _flask_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
