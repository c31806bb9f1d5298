"""
Request helpers shared by the blueprints and the RPC transport.
"""

from typing import Any, Dict, Optional

from flask import current_app, g, request


def get_json_body() -> Dict[str, Any]:
    """Parsed JSON object body, or an empty dict for anything else."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_client_ip() -> str:
    """First X-Forwarded-For entry, then X-Real-IP, then the socket address."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote_addr or 'unknown'


def get_extension(name: str) -> Optional[Any]:
    """Shared service registered on app.extensions by the app factory."""
    return current_app.extensions.get(name)


def get_tasks():
    """The current request's BackgroundTasks collector."""
    return g.get('tasks')


def get_current_user() -> Optional[Dict[str, Any]]:
    import auth
    return auth.get_current_user()
