"""Application-level exception types.

Only infrastructure and input failures are exceptional. Running out of quota
is a regular result of the tracker and never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    operation: str
    timeout_s: float
    amount: str
    setting: str
    address: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class InvalidAmountError(ValidationAppError):
    """Raised for negative, fractional or non-finite consumption amounts."""


class AuthenticationAppError(AppError):
    """Raised when an administrative credential is missing or wrong."""


class ConfigurationAppError(AppError):
    """Raised when a required secret or store credential is not configured."""


class StoreUnavailableError(AppError):
    """Raised when the quota store is unreachable or a call timed out."""
