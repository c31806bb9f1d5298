"""
Per-IP rate limiting on Flask-Limiter.

Counters live in the storage named by RATELIMIT_STORAGE_URI: memory:// keeps
them in this process, a redis:// URI shares them between instances. The
limiter uses a moving window and is bound to each app in security.py.

General endpoints share the default limit, counted per IP and path. Route
families get a shared limit counted per IP, applied where their blueprint
is defined.
"""

import logging

from flask import request
from flask_limiter import Limiter

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    # name: (limit, message)
    'default': ('100 per 15 minutes', 'Too many requests from this IP, please try again later.'),
    'auth': ('50 per 15 minutes', 'Too many authentication attempts, please try again later.'),
    'upload': ('10 per minute', 'Too many file uploads, please try again later.'),
    'payment': ('10 per 5 minutes', 'Too many payment attempts, please try again later.'),
    'email': ('5 per minute', 'Too many email requests, please try again later.'),
    'admin': ('200 per 15 minutes', 'Too many admin requests, please try again later.'),
}

QUIET_PATHS = ('/api/health', '/api/ping')


def client_ip() -> str:
    from app.utils.helpers import get_client_ip
    return get_client_ip()


def client_ip_and_path() -> str:
    return f"{client_ip()}:{request.path}"


limiter = Limiter(
    key_func=client_ip_and_path,
    default_limits=[RATE_LIMITS['default'][0]],
    strategy='moving-window',
    headers_enabled=True,
)


@limiter.request_filter
def skip_unlimited_requests():
    """Health checks and CORS preflights are never counted"""
    return request.method == 'OPTIONS' or request.path in QUIET_PATHS


def shared_limit(name: str):
    """
    Decorator for a view or a whole blueprint drawing on one named budget.

    Every view decorated with the same name shares the counter, so
    forgot-password and magic-link together get five emails a minute.
    """
    limit, message = RATE_LIMITS[name]
    return limiter.shared_limit(limit, scope=name, key_func=client_ip, error_message=message)


auth_limit = shared_limit('auth')
upload_limit = shared_limit('upload')
payment_limit = shared_limit('payment')
email_limit = shared_limit('email')
admin_limit = shared_limit('admin')


def limit_message(error) -> str:
    """Message of the breached limit; the default limit carries none of its own"""
    if getattr(error.limit, 'error_message', None):
        return error.description
    return RATE_LIMITS['default'][1]


def reset_rate_limits():
    """Clear every counter in the configured storage"""
    limiter.reset()
    logger.info("Rate limit counters cleared")
