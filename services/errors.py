"""
Service-layer exceptions.

Each error carries the HTTP status the API layer should answer with, so
routes and RPC procedures can raise from deep inside a service and let the
error handler in security.py render the JSON response.
"""


class ServiceError(Exception):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message, status_code=None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self):
        data = {'success': False, 'error': self.message}
        data.update(self.extra)
        return data


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class PermissionDenied(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class GoneError(ServiceError):
    status_code = 410


class TooManyAttemptsError(ServiceError):
    status_code = 429


class IntegrationError(ServiceError):
    """A third-party API (gateway, storage, email) failed."""
    status_code = 502


class ServiceUnavailable(ServiceError):
    """An integration is not configured in this environment."""
    status_code = 503
