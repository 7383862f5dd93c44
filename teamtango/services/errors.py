"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status and machine-readable error kind that
the API layer renders as ``{"error": kind, "message": message}``.
"""

from typing import Dict, Optional


class DomainError(ValueError):
    """Base class for business rule violations."""

    status_code = 400
    error = "bad_request"

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.headers = headers


class ValidationError(DomainError):
    """Raised when request input is missing or malformed."""

    status_code = 400
    error = "validation_error"


class AuthenticationError(DomainError):
    """Raised when the caller cannot be identified."""

    status_code = 401
    error = "not_authenticated"

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message, error, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(DomainError):
    """Raised when the caller is identified but not allowed."""

    status_code = 403
    error = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    error = "not_found"


class ConflictError(DomainError):
    """Raised on uniqueness or availability conflicts."""

    status_code = 409
    error = "conflict"


class InvalidStateError(DomainError):
    """Raised when a lifecycle transition is not allowed."""

    status_code = 409
    error = "invalid_state"
