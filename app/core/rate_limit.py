"""Fixed-window request rate limiting with a pluggable counter store."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitStore(Protocol):
    async def increment(self, key: str, window_ms: int, now_ms: int) -> int:
        """Increment the counter for ``key`` and return the new count."""
        ...

    async def prune(self, now_ms: int) -> int:
        """Drop expired counters; returns how many were removed."""
        ...


class InMemoryRateLimitStore:
    """Process-local counters. Not shared between workers or instances."""

    def __init__(self) -> None:
        self._counters: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    async def increment(self, key: str, window_ms: int, now_ms: int) -> int:
        with self._lock:
            count, expires_at = self._counters.get(key, (0, 0))
            if expires_at <= now_ms:
                count, expires_at = 0, now_ms + window_ms
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    async def prune(self, now_ms: int) -> int:
        with self._lock:
            expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now_ms]
            for key in expired:
                del self._counters[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


class RedisRateLimitStore:
    """Counters shared through Redis; keys expire on their own."""

    def __init__(self, client: Any, prefix: str = "ratelimit:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisRateLimitStore":
        return cls(redis.from_url(redis_url, decode_responses=True))

    async def increment(self, key: str, window_ms: int, now_ms: int) -> int:
        full_key = f"{self.prefix}{key}"
        count = int(await self.client.incr(full_key))
        if count == 1:
            await self.client.pexpire(full_key, window_ms)
        return count

    async def prune(self, now_ms: int) -> int:
        return 0

    async def close(self) -> None:
        await self.client.aclose()


class RateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        limit: int,
        window_ms: int,
        clock: Optional[Clock] = None,
    ):
        if limit < 1 or window_ms < 1:
            raise ValueError("limit and window_ms must be positive")
        self.store = store
        self.limit = limit
        self.window_ms = window_ms
        self.clock = clock or _now_ms

    def window_key(self, identifier: str, now_ms: int) -> str:
        window_start = now_ms - (now_ms % self.window_ms)
        return f"{identifier}:{window_start}"

    async def allow(self, identifier: str) -> bool:
        now_ms = self.clock()
        count = await self.store.increment(self.window_key(identifier, now_ms), self.window_ms, now_ms)
        if count > self.limit:
            logger.info("Rate limit exceeded", extra={"ratelimit.identifier": identifier, "ratelimit.count": count})
            return False
        return True

    async def prune(self) -> int:
        return await self.store.prune(self.clock())


_limiter: Optional[RateLimiter] = None


def build_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND.lower() == "redis":
        store: RateLimitStore = RedisRateLimitStore.from_url(settings.REDIS_URL)
    else:
        store = InMemoryRateLimitStore()
    return RateLimiter(store, settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_MS)


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = build_rate_limiter()
    return _limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    global _limiter
    _limiter = limiter


async def prune_periodically(limiter: RateLimiter, interval_seconds: float) -> None:
    """Prune expired counters until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = await limiter.prune()
        if removed:
            logger.debug("Pruned %d rate limit counters", removed)
