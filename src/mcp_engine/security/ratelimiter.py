"""Sliding-window rate limiting for JSON-RPC methods.

Used as a request guard by the server: a method named in the configured
limits is checked before dispatch, and an exceeded limit surfaces as a
RATE_LIMIT_EXCEEDED error response.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from collections.abc import Callable, Mapping
from typing import Any

from mcp_engine.protocol.errors import RateLimitExceededError


class RateLimiter:
    """Sliding window rate limiter keyed by method (or any string key).

    Example:
        limiter = RateLimiter(window_seconds=60.0)
        limiter.check_rate_limit("tools/call", limit=10)
    """

    def __init__(
        self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        """Initialize the rate limiter.

        Args:
            window_seconds: Size of the sliding window in seconds.
            clock: Time source.

        Raises:
            ValueError: If window_seconds is not positive.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def check_rate_limit(self, key: str, limit: int) -> None:
        """Record a request if it is within the limit.

        Args:
            key: Bucket key, usually the method name.
            limit: Maximum requests allowed in the window.

        Raises:
            RateLimitExceededError: If the limit has been reached.
        """
        now = self._clock()
        window_start = now - self._window_seconds

        with self._lock:
            bucket = [t for t in self._buckets[key] if t > window_start]
            self._buckets[key] = bucket

            if len(bucket) >= limit:
                raise RateLimitExceededError(
                    f"Rate limit exceeded for {key}: {limit} requests per {self._window_seconds}s",
                    {"key": key, "limit": limit, "window_seconds": self._window_seconds},
                )

            bucket.append(now)

    def get_request_count(self, key: str) -> int:
        """Number of requests recorded for ``key`` in the current window."""
        window_start = self._clock() - self._window_seconds
        with self._lock:
            return len([t for t in self._buckets.get(key, []) if t > window_start])

    def reset(self, key: str | None = None) -> None:
        """Reset one bucket, or all buckets when ``key`` is None."""
        with self._lock:
            if key is not None:
                self._buckets.pop(key, None)
            else:
                self._buckets.clear()


class MethodRateGuard:
    """Request guard applying per-method limits from configuration."""

    def __init__(self, limits: Mapping[str, int], limiter: RateLimiter | None = None) -> None:
        self._limits = dict(limits)
        self._limiter = limiter or RateLimiter()

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def __call__(self, method: str, params: Any) -> None:
        limit = self._limits.get(method)
        if limit is not None:
            self._limiter.check_rate_limit(method, limit)
