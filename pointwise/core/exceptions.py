"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class PointwiseError(Exception):
    """Base exception for pointwise."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(PointwiseError):
    """Resource not found."""

    pass


class ValidationError(PointwiseError):
    """Validation error (malformed request values or stored data)."""

    pass


class AuthenticationError(PointwiseError):
    """Authentication failed."""

    pass


class BusinessLogicError(PointwiseError):
    """Business logic constraint violation."""

    pass


class PolicyError(BusinessLogicError):
    """A task state transition that the recurrence rules do not allow."""

    pass


class InfrastructureError(PointwiseError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass
