from unittest.mock import AsyncMock

import pytest

from app.core.rate_limit import InMemoryRateLimitStore, RateLimiter, RedisRateLimitStore


class Clock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.mark.asyncio
async def test_allows_up_to_limit_within_window():
    clock = Clock()
    limiter = RateLimiter(InMemoryRateLimitStore(), limit=3, window_ms=60_000, clock=clock)

    results = [await limiter.allow("10.0.0.1") for _ in range(4)]

    assert results == [True, True, True, False]


@pytest.mark.asyncio
async def test_counters_are_per_identifier():
    limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, window_ms=60_000, clock=Clock())

    assert await limiter.allow("a")
    assert await limiter.allow("b")
    assert not await limiter.allow("a")


@pytest.mark.asyncio
async def test_new_window_resets_budget():
    clock = Clock(now=60_000)
    limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, window_ms=60_000, clock=clock)

    assert await limiter.allow("a")
    assert not await limiter.allow("a")
    clock.now += 60_000
    assert await limiter.allow("a")


@pytest.mark.asyncio
async def test_prune_drops_expired_counters():
    clock = Clock(now=0)
    store = InMemoryRateLimitStore()
    limiter = RateLimiter(store, limit=5, window_ms=1_000, clock=clock)
    await limiter.allow("a")
    await limiter.allow("b")

    assert await limiter.prune() == 0
    clock.now = 5_000
    assert await limiter.prune() == 2
    assert len(store) == 0


def test_rejects_non_positive_settings():
    with pytest.raises(ValueError):
        RateLimiter(InMemoryRateLimitStore(), limit=0, window_ms=1_000)


@pytest.mark.asyncio
async def test_redis_store_sets_expiry_on_first_hit():
    client = AsyncMock()
    client.incr.side_effect = [1, 2]
    store = RedisRateLimitStore(client, prefix="rl:")

    assert await store.increment("a:0", 60_000, 0) == 1
    assert await store.increment("a:0", 60_000, 10) == 2

    client.pexpire.assert_awaited_once_with("rl:a:0", 60_000)
    assert await store.prune(0) == 0


@pytest.mark.asyncio
async def test_redis_store_close():
    client = AsyncMock()
    await RedisRateLimitStore(client).close()
    client.aclose.assert_awaited_once()
