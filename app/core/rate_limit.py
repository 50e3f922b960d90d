"""Rate limiting wiring for the validation endpoint.

This module connects the rate limiting adapter to the request pipeline.

Design goals:
- Minimal coupling: the validation service calls ``enforce_rate_limit`` only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind
  ``AbstractRateLimiter``.
- Configuration-driven: limit and window come from ``VALIDATOR_*`` settings.

Rate limiting strategy:
- Fixed window per client identifier, anchored at the client's first request.
- The identifier is the connection address, else the first X-Forwarded-For
  entry, else the shared "unknown" bucket.
"""

from __future__ import annotations

import logging

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import settings
from app.core.errors import ErrorDetails, RateLimitAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

RATE_LIMITED_MESSAGE = "Too many requests. Please wait a few minutes before trying again."


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, float] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.validator.rate_limit_max,
        settings.validator.rate_limit_window_ms,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemoryFixedWindowRateLimiter(
            limit=settings.validator.rate_limit_max,
            window_seconds=settings.validator.rate_limit_window_ms / 1000,
        )
        _limiter_config = config

    return _limiter


def get_client_id(request: Request) -> str:
    """Derive the rate limit bucket for a request."""

    if request.client and request.client.host:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return UNKNOWN_CLIENT


def build_rate_limit_headers(details: ErrorDetails | None) -> dict[str, str]:
    """Build Retry-After / X-RateLimit-* headers from a RateLimitAppError."""

    if not details or not settings.validator.rate_limit_include_headers:
        return {}

    return {
        "Retry-After": str(details.get("retry_after", 0)),
        "X-RateLimit-Limit": str(details.get("limit", 0)),
        "X-RateLimit-Remaining": str(details.get("remaining", 0)),
        "X-RateLimit-Reset": str(details.get("reset_at", 0)),
    }


def enforce_rate_limit(client_id: str, limiter: AbstractRateLimiter | None = None) -> None:
    """Consume one request from the client's budget.

    Args:
        client_id: Rate limit bucket (see ``get_client_id``).
        limiter: Limiter to use; defaults to the process-wide instance.

    Raises:
        RateLimitAppError: When the client exhausted its window.
    """

    if not settings.validator.rate_limit_enabled:
        return

    result = (limiter or get_rate_limiter()).consume(client_id)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "client_id": client_id,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_id": client_id,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_ms": settings.validator.rate_limit_window_ms,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitAppError(
        code="rate_limited",
        message=RATE_LIMITED_MESSAGE,
        details={
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_at": result.reset_at,
            "retry_after": retry_after,
        },
    )
