"""Redis-backed fixed window rate limiter."""

from __future__ import annotations

from redis import Redis

from .rate_limiter import RateDecision


class RedisFixedWindowRateLimiter:
    """Distributed limiter sharing one counter per key across processes."""

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "rate"
    ) -> None:
        """Initialise the Redis client and window configuration."""
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def hit(self, key: str) -> RateDecision:
        """Increment the counter for ``key``, starting its window on the first hit."""
        redis_key = f"{self._key_prefix}:{key}"
        pipe = self._client.pipeline()
        pipe.incr(redis_key)
        pipe.pttl(redis_key)
        count, ttl_ms = pipe.execute()
        if ttl_ms is None or int(ttl_ms) < 0:
            self._client.pexpire(redis_key, self._window_ms)
            ttl_ms = self._window_ms
        count = int(count)
        return RateDecision(
            allowed=count <= self._max_requests,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - count),
            reset_after=max(0, int(ttl_ms) // 1000),
        )

    def reset(self, key: str) -> None:
        self._client.delete(f"{self._key_prefix}:{key}")
