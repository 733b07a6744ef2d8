"""Tests for the in-memory and Redis-backed fixed window rate limiters."""

from __future__ import annotations

import fakeredis
import pytest

from app.security.rate_limiter import FixedWindowRateLimiter
from app.security.redis_rate_limiter import RedisFixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


def test_memory_limiter_blocks_after_threshold():
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60)
    first = limiter.hit("login:1.2.3.4")
    second = limiter.hit("login:1.2.3.4")
    third = limiter.hit("login:1.2.3.4")

    assert first.allowed and first.remaining == 1
    assert second.allowed and second.remaining == 0
    assert not third.allowed
    assert limiter.hit("login:5.6.7.8").allowed


def test_memory_limiter_resets_after_window():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.hit("key").allowed
    clock.now += 30
    blocked = limiter.hit("key")
    assert not blocked.allowed
    assert blocked.reset_after == 30
    clock.now += 30
    assert limiter.hit("key").allowed


def test_redis_limiter_allows_within_threshold(redis_client):
    limiter = RedisFixedWindowRateLimiter(
        redis_client, max_requests=3, window_seconds=60, key_prefix="test"
    )
    decisions = [limiter.hit("register:1.2.3.4") for _ in range(3)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [2, 1, 0]


def test_redis_limiter_blocks_excess_and_sets_expiry(redis_client):
    limiter = RedisFixedWindowRateLimiter(
        redis_client, max_requests=1, window_seconds=60, key_prefix="test"
    )
    assert limiter.hit("key").allowed
    blocked = limiter.hit("key")

    assert not blocked.allowed
    assert 0 < redis_client.pttl("test:key") <= 60_000
    assert 0 <= blocked.reset_after <= 60


def test_redis_limiter_reset(redis_client):
    limiter = RedisFixedWindowRateLimiter(
        redis_client, max_requests=1, window_seconds=60, key_prefix="test"
    )
    limiter.hit("key")
    limiter.reset("key")
    assert limiter.hit("key").allowed
