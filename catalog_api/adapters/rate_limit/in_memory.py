"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Memory is bounded on a best-effort basis: expired windows are swept only
  once the number of tracked keys exceeds ``max_tracked_keys``.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from catalog_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Each key gets its own window that opens on the first request and lasts
    ``window_seconds``. Within the window at most ``limit`` requests are
    allowed; once the window has passed, the next request starts a new one.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        max_tracked_keys: int = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed requests per window.
            window_seconds: Size of the fixed window in seconds.
            max_tracked_keys: Key count above which expired entries are swept.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or max_tracked_keys are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if max_tracked_keys < 1:
            raise ValueError("max_tracked_keys must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._max_tracked_keys = max_tracked_keys
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def tracked_keys(self) -> int:
        return len(self._entries)

    def _sweep_expired(self, now: float) -> None:
        """Drop every entry whose window has already passed."""
        expired = [key for key, entry in self._entries.items() if entry.reset_time < now]
        for key in expired:
            del self._entries[key]

        logger.debug(
            "rate_limit.sweep",
            extra={"removed": len(expired), "tracked": len(self._entries)},
        )

    def _build_allowed_result(self, *, remaining: int, reset_time: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=remaining,
            reset_at=int(math.ceil(reset_time)),
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, *, now: float, reset_time: float) -> RateLimitResult:
        retry_after = max(0, int(math.ceil(reset_time - now)))
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=int(math.ceil(reset_time)),
            retry_after_seconds=retry_after,
        )

    def consume(self, key: str) -> RateLimitResult:
        """Count a request for the provided key.

        A blocked request does not increment the counter, so a client that
        keeps hammering the API is released as soon as its window expires.

        Args:
            key: Unique identifier for rate limiting (e.g., source IP).

        Returns:
            RateLimitResult with allowance decision and metadata.
        """
        now = self._clock()

        with self._lock:
            if len(self._entries) > self._max_tracked_keys:
                self._sweep_expired(now)

            entry = self._entries.get(key)

            if entry is None or entry.reset_time < now:
                entry = RateLimitEntry(count=1, reset_time=now + self._window_seconds)
                self._entries[key] = entry
                return self._build_allowed_result(
                    remaining=self._limit - 1,
                    reset_time=entry.reset_time,
                )

            if entry.count >= self._limit:
                return self._build_blocked_result(now=now, reset_time=entry.reset_time)

            entry.count += 1
            return self._build_allowed_result(
                remaining=self._limit - entry.count,
                reset_time=entry.reset_time,
            )
