"""Application-level exception types.

This module defines domain errors used across routes and guards, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class FieldError(TypedDict):
    """A single validation problem on one input field."""

    field: str
    message: str


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    fields: list[FieldError]
    blocked_until: str
    retry_after: int
    limit: int
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


class AuthenticationAppError(AppError):
    """Raised when credentials are rejected."""


@dataclass
class RateLimitExceededAppError(AppError):
    """Raised when a guard denies the caller.

    Attributes:
        blocked_until: UNIX epoch seconds when the caller may try again.
        retry_after: Whole seconds until then, for the Retry-After header.
        limit: Attempts allowed per window by the guard that denied.
    """

    blocked_until: float | None = None
    retry_after: int = 0
    limit: int | None = None
