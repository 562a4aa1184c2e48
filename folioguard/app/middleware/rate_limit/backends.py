"""Rate limit stores.

A store owns the fixed-window counters. ``increment`` must be atomic per
identifier: it either starts a new window with ``count == 1`` (no entry, or
the entry's window has passed) or adds one to the live window.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Optional

import redis
import redis.asyncio as aioredis

from folioguard.app.core.logging import get_logger
from folioguard.app.middleware.rate_limit.models import RateLimitEntry

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "folioguard:ratelimit:"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# INCR and PEXPIRE in one round trip so concurrent instances agree on the window.
# A key left without a TTL (e.g. PEXPIRE lost) is given one here.
INCREMENT_SCRIPT = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
    end
    local ttl = redis.call('PTTL', KEYS[1])
    if ttl < 0 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
        ttl = tonumber(ARGV[1])
    end
    return {count, ttl}
"""


class RateLimitStoreError(Exception):
    """Raised by a store when its backing service is unavailable."""

    def __init__(self, error_type: str, message: str = ""):
        self.error_type = error_type
        super().__init__(message or error_type)


class RateLimitStore(ABC):
    """Abstract base class for rate limit stores."""

    @abstractmethod
    async def get(self, identifier: str, now: int) -> Optional[RateLimitEntry]:
        """Return the live entry for an identifier, or None."""

    @abstractmethod
    async def increment(self, identifier: str, window_ms: int, now: int) -> RateLimitEntry:
        """Count one request and return the updated entry."""

    @abstractmethod
    async def expire(self, identifier: str) -> None:
        """Drop the entry for an identifier."""

    @abstractmethod
    async def sweep(self, now: int) -> int:
        """Remove expired entries and return how many were removed."""

    async def close(self) -> None:
        """Release backend connections."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store for single-instance deployments.

    Entries live in an OrderedDict kept in least-recently-used order; when
    ``max_entries`` is exceeded the oldest 20% are evicted.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._max_entries = max_entries
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _enforce_lru_limit(self) -> None:
        if len(self._entries) > self._max_entries:
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._entries.popitem(last=False)

    async def get(self, identifier: str, now: int) -> Optional[RateLimitEntry]:
        async with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[identifier]
                return None
            return RateLimitEntry(entry.identifier, entry.count, entry.window_reset_at)

    async def increment(self, identifier: str, window_ms: int, now: int) -> RateLimitEntry:
        async with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or entry.is_expired(now):
                entry = RateLimitEntry(
                    identifier=identifier, count=1, window_reset_at=now + window_ms
                )
                self._entries[identifier] = entry
                self._enforce_lru_limit()
            else:
                entry.count += 1
                self._entries.move_to_end(identifier)
            return RateLimitEntry(entry.identifier, entry.count, entry.window_reset_at)

    async def expire(self, identifier: str) -> None:
        async with self._lock:
            self._entries.pop(identifier, None)

    async def sweep(self, now: int) -> int:
        async with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)


class RedisRateLimitStore(RateLimitStore):
    """Redis-backed store for multi-instance deployments.

    Windows are Redis keys with a millisecond TTL, so expired entries vanish
    server-side and ``sweep`` has nothing to do.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: str = DEFAULT_REDIS_URL,
        key_prefix: str = REDIS_KEY_PREFIX,
    ):
        self._redis_url = redis_url
        self._redis = redis_client
        self._key_prefix = key_prefix

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    def _key(self, identifier: str) -> str:
        return f"{self._key_prefix}{identifier}"

    async def _call(self, operation: str, coro_factory):
        try:
            return await coro_factory(self._get_redis())
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed during {operation}: {e}")
            raise RateLimitStoreError("connection_error", str(e)) from e
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout during {operation}: {e}")
            raise RateLimitStoreError("timeout", str(e)) from e
        except redis.RedisError as e:
            logger.error(f"Redis error during {operation}: {e}")
            raise RateLimitStoreError("redis_error", str(e)) from e

    async def get(self, identifier: str, now: int) -> Optional[RateLimitEntry]:
        key = self._key(identifier)

        async def _get(client):
            pipe = client.pipeline()
            pipe.get(key)
            pipe.pttl(key)
            return await pipe.execute()

        raw_count, ttl = await self._call("get", _get)
        if raw_count is None or ttl is None or int(ttl) <= 0:
            return None
        return RateLimitEntry(
            identifier=identifier, count=int(raw_count), window_reset_at=now + int(ttl)
        )

    async def increment(self, identifier: str, window_ms: int, now: int) -> RateLimitEntry:
        key = self._key(identifier)
        count, ttl = await self._call(
            "increment",
            lambda client: client.eval(INCREMENT_SCRIPT, 1, key, window_ms),
        )
        return RateLimitEntry(
            identifier=identifier, count=int(count), window_reset_at=now + int(ttl)
        )

    async def expire(self, identifier: str) -> None:
        key = self._key(identifier)
        await self._call("expire", lambda client: client.delete(key))

    async def sweep(self, now: int) -> int:
        return 0

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
