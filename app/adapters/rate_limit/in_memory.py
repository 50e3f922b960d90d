"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: check-and-increment happens under a single lock.
- Entries are never evicted; cardinality is bounded by the number of
  distinct clients seen during the process lifetime.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class ClientWindow:
    count: int
    reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per client.

    A client's window opens with its first request and lasts
    ``window_seconds``. Requests arriving strictly after ``reset_at`` open a
    fresh window; there is no sliding, so bursts at a window boundary are
    possible.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests per window.
            window_seconds: Length of a client's window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if not window_seconds > 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, ClientWindow] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def get_window(self, key: str) -> ClientWindow | None:
        """Return a snapshot of the stored window for ``key``, if any."""
        with self._lock:
            window = self._windows.get(key)
            return None if window is None else ClientWindow(window.count, window.reset_at)

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` within its current window.

        Args:
            key: Client identifier.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            window = self._windows.get(key)

            if window is None or now > window.reset_at:
                window = ClientWindow(count=1, reset_at=now + self._window_seconds)
                self._windows[key] = window
                return self._result(window, allowed=True, now=now)

            if window.count >= self._limit:
                return self._result(window, allowed=False, now=now)

            window.count += 1
            return self._result(window, allowed=True, now=now)

    def _result(self, window: ClientWindow, *, allowed: bool, now: float) -> RateLimitResult:
        retry_after = None if allowed else max(0, int(math.ceil(window.reset_at - now)))
        return RateLimitResult(
            allowed=allowed,
            limit=self._limit,
            remaining=max(0, self._limit - window.count),
            reset_at=int(math.ceil(window.reset_at)),
            retry_after_seconds=retry_after,
        )
