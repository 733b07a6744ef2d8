"""In-memory fixed window rate limiter implementation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass(frozen=True, slots=True)
class RateDecision:
    """Outcome of a rate-limit check, with the data needed for ``RateLimit-*`` headers."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class FixedWindowRateLimiter:
    """Thread-safe counter per key that resets at the end of each window."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise limiter parameters and per-key storage."""
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> RateDecision:
        """Count one request against ``key`` and report whether it may proceed."""
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self._window:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
        reset_after = max(0, int(started + self._window - now))
        return RateDecision(
            allowed=count <= self._max_requests,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - count),
            reset_after=reset_after,
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)
