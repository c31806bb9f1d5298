"""
Security Utilities & Middleware
Error handlers, request guards (security monitor, rate limiter, CSRF),
response headers and request logging.
"""
import os
import secrets
import time
from datetime import datetime
from typing import Dict, Any
from flask import Flask, request, jsonify, Response, session
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded
from werkzeug.exceptions import HTTPException
import logging

from app.utils.helpers import get_client_ip, get_extension
from services.csrf import csrf, CSRFError
from services.errors import ServiceError
from services.rate_limiter import limiter, limit_message, QUIET_PATHS
from services.security_monitor import SecurityEventType, ThreatLevel

logger = logging.getLogger(__name__)


class SecurityConfig:
    """Security configuration and validation"""

    @staticmethod
    def generate_secret_key() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """
        Validate that secret key is sufficiently secure

        Args:
            secret_key: Secret key to validate

        Returns:
            True if key is secure, False otherwise
        """
        if not secret_key:
            return False

        # 32 characters for 128-bit security
        if len(secret_key) < 32:
            logger.warning("Secret key is too short (minimum 32 characters)")
            return False

        weak_keys = ['dev', 'secret', 'password', '12345']
        if any(weak in secret_key.lower() for weak in weak_keys):
            logger.warning("Secret key appears to be weak or default")
            return False

        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any], testing: bool = False) -> str:
        """
        Ensure a secure secret key is configured

        Args:
            config: Application configuration dictionary
            testing: Keep the configured key even when it looks weak

        Returns:
            Secure secret key
        """
        secret_key = config.get('SECRET_KEY')
        if testing and secret_key:
            return secret_key

        if not secret_key or not SecurityConfig.validate_secret_key(secret_key):
            if os.environ.get('FLASK_ENV') == 'production':
                logger.error("No secure SECRET_KEY in production! Generating one...")
                logger.error("Add SECRET_KEY to environment variables so sessions survive restarts!")

            secret_key = SecurityConfig.generate_secret_key()
            logger.warning(f"Generated new secret key (length: {len(secret_key)})")

        return secret_key


def setup_security_headers(app: Flask):
    """
    Add security headers to all responses

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-XSS-Protection'] = '1; mode=block'

        # HTTPS only outside debug
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # JSON API: nothing is rendered, images may come from the bucket
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "frame-ancestors 'none';"
        )
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """
    Configure CORS

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization'])

    if not app.debug and '*' in cors_origins:
        logger.warning("⚠️  Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=cors_origins,
        methods=cors_methods,
        allow_headers=cors_headers,
        expose_headers=['RateLimit-Limit', 'RateLimit-Remaining', 'RateLimit-Reset', 'Retry-After'],
        supports_credentials=True,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Sanitize error response to prevent information leakage

    Args:
        error: Exception object
        include_details: Whether to include detailed error info (dev only)

    Returns:
        Sanitized error response dictionary
    """
    error_response = {
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request'
    }

    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


def setup_error_handlers(app: Flask):
    """
    Register JSON error handlers that don't expose stack traces

    Args:
        app: Flask application instance
    """
    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        else:
            logger.info(f"{request.method} {request.path} -> {error.status_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RateLimitExceeded)
    def rate_limit_exceeded(error: RateLimitExceeded):
        amount = error.limit.limit.amount
        logger.warning(f"Rate limit exceeded for {get_client_ip()} on {request.path} ({error.limit.limit})")
        record_security_event(
            SecurityEventType.RATE_LIMIT_EXCEEDED, ThreatLevel.MEDIUM, 'Rate limit exceeded',
            limit=str(error.limit.limit)
        )

        current = limiter.current_limit
        reset_at = int(current.reset_at) if current else int(time.time()) + 60
        response = jsonify({
            'error': limit_message(error),
            'limit': amount,
            'remaining': 0,
            'reset': datetime.utcfromtimestamp(reset_at).isoformat() + 'Z'
        })
        response.headers['Retry-After'] = str(max(1, reset_at - int(time.time())))
        return response, 429

    @app.errorhandler(CSRFError)
    def csrf_error(error: CSRFError):
        logger.warning(f"CSRF check failed for {request.method} {request.path}: {error.description}")
        record_security_event(
            SecurityEventType.CSRF_ATTACK, ThreatLevel.HIGH, 'CSRF token validation failed',
            method=request.method,
            reason=error.description
        )
        return jsonify({'error': error.description, 'code': 'CSRF_TOKEN_INVALID'}), 403

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({
            'error': error.name,
            'message': error.description
        }), error.code

    @app.errorhandler(Exception)
    def unhandled_error(error: Exception):
        logger.error(f"Internal server error on {request.method} {request.path}: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, app.debug)), 500

    logger.info("Error handlers registered")


# ============================================================================
# REQUEST GUARDS
# ============================================================================

def _current_user_id():
    return session.get('user_id')


def record_security_event(event_type: str, severity: str, description: str, **details):
    monitor = get_extension('security_monitor')
    if monitor is None:
        return
    monitor.record(
        event_type, severity, get_client_ip(), description,
        user_agent=request.user_agent.string,
        user_id=_current_user_id(),
        endpoint=request.path,
        **details
    )


def check_security_monitor(ip: str):
    """Block requests from blocked IPs or carrying a critical threat."""
    monitor = get_extension('security_monitor')
    if monitor is None:
        return None

    blocked = monitor.is_blocked(ip)
    events = monitor.analyze_request(
        ip,
        request.url,
        request.args.to_dict(flat=False),
        request.user_agent.string,
        _current_user_id()
    )
    for event in events:
        monitor.log_event(event)

    critical = next((e for e in events if e.severity == ThreatLevel.CRITICAL), None)
    if critical is not None:
        return jsonify({
            'error': 'Request blocked due to security threat',
            'code': 'SECURITY_THREAT_DETECTED',
            'threatId': critical.id
        }), 403
    if blocked:
        return jsonify({'error': 'Access denied', 'code': 'IP_BLOCKED'}), 403
    return None


def setup_request_guards(app: Flask):
    """
    Run the security monitor, the rate limiter and the CSRF check before each
    request, in that order.

    The monitor hook is registered first so blocked IPs never reach the
    limiter. Flask-Limiter and Flask-WTF add their own hooks in init_app and
    honor RATELIMIT_ENABLED and WTF_CSRF_ENABLED.
    """
    @app.before_request
    def guard_request():
        if request.method == 'OPTIONS' or request.path in QUIET_PATHS:
            return None
        return check_security_monitor(get_client_ip())

    limiter.init_app(app)
    csrf.init_app(app)

    logger.info(f"Request guards configured (rate limiting: {app.config.get('RATELIMIT_ENABLED')}, "
                f"CSRF: {app.config.get('WTF_CSRF_ENABLED')}, "
                f"monitor: {app.extensions.get('security_monitor') is not None})")


def setup_request_logging(app: Flask):
    """
    Setup request/response logging

    Args:
        app: Flask application instance
    """
    @app.before_request
    def log_request():
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {get_client_ip()} "
            f"User-Agent: {request.user_agent.string[:100]}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code} "
            f"size={response.content_length}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask):
    """
    Validate that required environment variables are set

    Args:
        required_vars: List of required environment variable names
        app: Flask application instance
    """
    missing_vars = []

    for var in required_vars:
        if not os.environ.get(var):
            missing_vars.append(var)
            logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")
        logger.error("Application may not function correctly!")

    return len(missing_vars) == 0


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    logger.info("Configuring application security...")

    app.secret_key = SecurityConfig.ensure_secret_key(config, testing=app.testing)

    setup_cors(app, config)
    setup_request_logging(app)
    setup_request_guards(app)
    setup_security_headers(app)
    setup_error_handlers(app)

    if not app.debug:
        validate_environment_variables(
            ['SECRET_KEY', 'DATABASE_URL', 'MIDTRANS_SERVER_KEY', 'RESEND_API_KEY', 'CRON_SECRET'],
            app
        )

    logger.info("✅ Security configuration complete")
