"""Rate limiting adapters.

The validation service depends on ``AbstractRateLimiter`` only, so the
process-local limiter can later be replaced by a shared expiring-counter
store without touching the HTTP layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
]
