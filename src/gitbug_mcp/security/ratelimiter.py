"""Sliding-window rate limiting for tool calls."""

from __future__ import annotations

import threading
import time
from collections import defaultdict


class RateLimitExceeded(Exception):
    """Raised when a tool has been called too often within the window."""

    pass


class RateLimiter:
    """Per-tool sliding window of call timestamps.

    Example:
        limiter = RateLimiter(window_seconds=60.0)
        limiter.check_rate_limit("create_issue", limit=10)
    """

    def __init__(self, window_seconds: float = 60.0) -> None:
        """Initialize the rate limiter.

        Args:
            window_seconds: Size of the sliding window in seconds.

        Raises:
            ValueError: If window_seconds is not positive.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._window_seconds = window_seconds
        self._buckets: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _prune(self, tool_name: str, now: float) -> list[float]:
        window_start = now - self._window_seconds
        bucket = [t for t in self._buckets[tool_name] if t > window_start]
        self._buckets[tool_name] = bucket
        return bucket

    def check_rate_limit(self, tool_name: str, limit: int) -> None:
        """Record a call, or refuse it if the window is already full.

        Args:
            tool_name: Name of the tool being invoked.
            limit: Maximum calls allowed in the window.

        Raises:
            RateLimitExceeded: If the rate limit has been exceeded.
        """
        with self._lock:
            now = time.monotonic()
            bucket = self._prune(tool_name, now)

            if len(bucket) >= limit:
                raise RateLimitExceeded(
                    f"Rate limit exceeded for {tool_name}: "
                    f"{limit} requests per {self._window_seconds}s"
                )

            bucket.append(now)

