"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Each subclass carries
the HTTP status it maps to so the orchestrator and the global handlers agree
on the failure-to-status mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    hint: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    timeout_ms: float
    error_type: str
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

    http_status: ClassVar[int] = 500

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when the submitted referral code is missing or malformed."""

    http_status = 400


class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget for the window."""

    http_status = 429


class UpstreamAppError(AppError):
    """Base class for failures reaching the referral webhook."""

    http_status = 504


class UpstreamTimeoutAppError(UpstreamAppError):
    """Raised when the webhook does not answer within the configured timeout."""


class UpstreamNetworkAppError(UpstreamAppError):
    """Raised when the webhook call fails for any non-timeout transport reason."""
