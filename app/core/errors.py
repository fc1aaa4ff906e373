"""
Application error taxonomy.

Every authorization failure is raised as one of these exceptions and mapped to
a JSON response by the handler registered in app.main.
"""
from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Unauthorized: Authentication required"


class InvalidRoleError(AppError, ValueError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_ROLE"
    default_message = "Unrecognized role"


class InvalidPermissionError(AppError, ValueError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_PERMISSION"
    default_message = "Unrecognized permission"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Forbidden: Insufficient permissions"


class NoOrganizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "NO_ORGANIZATION"
    default_message = "Organization not found in session"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Resource already exists"


class PaymentRequiredError(AppError):
    """Paid feature used by an organization without an active or trial plan."""
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "PAYMENT_REQUIRED"
    default_message = "An active subscription or trial is required"
