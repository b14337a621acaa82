"""
BudgetPace - Error Types.

Classes:
    FieldError: A single field-level validation failure.
    BudgetPaceError: Base class for all BudgetPace errors.
    ValidationError: Input rejected before any computation or write.
    NotFoundError: A campaign, config or client that is required is absent.
    ExternalServiceError: An ad-platform collaborator call failed.
"""

from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass
class FieldError:
    """
    Represents a single validation error with context.

    Attributes:
        field_name: The name of the field that failed validation.
        value: The invalid value that was provided.
        message: A client-facing error message.
    """

    field_name: str
    value: Any
    message: str

    def __str__(self) -> str:
        """Returns a formatted error message for client display."""
        return f"Error: '{self.field_name}' - {self.message}"


class BudgetPaceError(Exception):
    """Base class for BudgetPace errors."""


class ValidationError(BudgetPaceError, ValueError):
    """
    Raised when input is rejected before any computation.

    Attributes:
        errors: Field-level errors that caused the rejection.
    """

    def __init__(self, message: str, errors: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.errors: List[FieldError] = list(errors or [])

    @classmethod
    def for_field(cls, field_name: str, value: Any, message: str) -> "ValidationError":
        """Builds a ValidationError carrying a single FieldError."""
        error = FieldError(field_name=field_name, value=value, message=message)
        return cls(str(error), [error])


class NotFoundError(BudgetPaceError, LookupError):
    """Raised when a required campaign, config or client is absent."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class ExternalServiceError(BudgetPaceError):
    """
    Raised when an ad-platform collaborator call fails.

    Attributes:
        status_code: HTTP-like status code, or None for network failures.
        retryable: True for transient conditions (network, timeout, 5xx).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        if retryable is None:
            retryable = status_code is None or status_code >= 500
        self.retryable = retryable
