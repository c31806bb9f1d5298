"""
CSRF protection for browser-originated mutations, on Flask-WTF.

Tokens are signed with SECRET_KEY and tied to the session, so they are valid
on every worker and stop working once logout clears the session. Blueprints
and views that authenticate another way (session JSON APIs behind CORS,
signed webhooks, cron secrets) are exempted where they are defined.
"""

from flask import current_app
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf

HEADER_NAME = 'X-CSRF-Token'

csrf = CSRFProtect()


def csrf_enabled() -> bool:
    return bool(current_app.config.get('WTF_CSRF_ENABLED', True))


def issue_token() -> str:
    """Token for the current session, creating the session secret if needed"""
    return generate_csrf()


__all__ = ['csrf', 'CSRFError', 'HEADER_NAME', 'csrf_enabled', 'issue_token']
