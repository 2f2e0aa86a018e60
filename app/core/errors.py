"""
Application error types.

Services raise these synchronously; `app.main` translates them into JSON
responses carrying `status_code`.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors whose message is safe to show to the caller."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized access"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden access"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource conflict"


class ValidationError(AppError):
    """422 - business rule or input shape violation, with per-field errors."""

    status_code = 422
    default_message = "Validation error"
