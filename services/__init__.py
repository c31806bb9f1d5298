"""
Services package for WMX Services.
Contains the domain services and repository classes behind the API.
"""

from services.users_repository import UsersRepository
from services.notification_service import NotificationService
from services.activity_logger import ActivityLogger

__all__ = [
    'UsersRepository',
    'NotificationService',
    'ActivityLogger'
]
