"""
Utilities Package

Shared helper functions used across the application.
"""

from app.utils.helpers import (
    get_json_body,
    get_client_ip,
    get_extension,
    get_tasks,
    get_current_user,
)

__all__ = [
    'get_json_body',
    'get_client_ip',
    'get_extension',
    'get_tasks',
    'get_current_user',
]
