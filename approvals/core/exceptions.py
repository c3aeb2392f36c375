"""Custom exception classes for the approvals service.

Every error carries a ``kind`` and the HTTP status it is rendered with, so a
single exception handler can surface it to the caller verbatim.
"""

from fastapi import status


class ApprovalsError(Exception):
    """Base exception for the approvals service."""

    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(ApprovalsError):
    """Raised when no valid principal is attached to the request."""
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(ApprovalsError):
    """Raised when the principal lacks a role, capability or level."""
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(ApprovalsError):
    """Raised when a requested resource is not found."""
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(ApprovalsError):
    """Raised when an action is not valid from the document's status."""
    kind = "InvalidTransition"
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(ApprovalsError):
    """Raised when input validation fails."""
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidConfigurationError(ApprovalsError):
    """Raised when the approval matrix cannot route a document unambiguously."""
    kind = "InvalidConfiguration"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(ApprovalsError):
    """Raised when a status write lost an optimistic concurrency race.

    The caller is expected to re-read the document and retry.
    """
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class ResourceConflictError(ApprovalsError):
    """Raised when a resource already exists or is still referenced."""
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class AppendOnlyViolation(ApprovalsError):
    """Raised when code tries to update or delete an append-only record."""
    kind = "AppendOnlyViolation"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UnavailableError(ApprovalsError):
    """Raised when the persistence layer cannot be reached."""
    kind = "Unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
