"""Fixed-window rate limiting.

Each identifier (client IP, or a composite such as ``upload:<ip>``) gets a
counter that starts at 1 on the first request of a window and is denied once
the count exceeds the limit. Counters live in a RateLimitStore: in memory for
a single process, Redis when several instances share the limit.
"""

import asyncio
import math
import time
from typing import Optional

from folioguard.app.core.config import settings
from folioguard.app.core.logging import get_logger

from folioguard.app.middleware.rate_limit.models import (
    RateLimitEntry,
    RateLimitResult,
)
from folioguard.app.middleware.rate_limit.backends import (
    InMemoryRateLimitStore,
    RateLimitStore,
    RateLimitStoreError,
    RedisRateLimitStore,
)

logger = get_logger(__name__)

__all__ = [
    # Models
    "RateLimitEntry",
    "RateLimitResult",
    # Stores
    "RateLimitStore",
    "RateLimitStoreError",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
    # Main classes
    "RateLimiter",
    "build_rate_limit_store",
    "get_rate_limiter",
    "reset_rate_limiter",
    "check_rate_limit",
    "rate_limit_headers",
    "run_periodic_sweep",
]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Fixed-window limiter over a pluggable store.

    Attributes:
        store: Where counters live
        max_requests: Default requests allowed per window
        window_ms: Default window length in milliseconds
        fail_closed: Deny when the store is unavailable (default: allow)
    """

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        max_requests: int = 10,
        window_ms: int = 3_600_000,
        fail_closed: bool = False,
        clock=_now_ms,
    ):
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.fail_closed = fail_closed
        self._clock = clock

    async def check(
        self,
        identifier: str,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
    ) -> RateLimitResult:
        """Count a request for ``identifier`` and decide whether it is allowed.

        Args:
            identifier: Rate limit key
            max_requests: Override the default limit
            window_ms: Override the default window length

        Returns:
            RateLimitResult; when denied, ``retry_after_seconds`` is the
            seconds until the window resets (at least 1)
        """
        limit = max_requests or self.max_requests
        window = window_ms or self.window_ms
        now = self._clock()

        try:
            entry = await self.store.increment(identifier, window, now)
        except RateLimitStoreError as e:
            return self._handle_store_failure(e.error_type, limit, window, now)

        if entry.count > limit:
            retry_after = max(1, math.ceil((entry.window_reset_at - now) / 1000))
            return RateLimitResult(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at=entry.window_reset_at,
                retry_after_seconds=retry_after,
            )

        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - entry.count),
            reset_at=entry.window_reset_at,
        )

    def _handle_store_failure(
        self, error_type: str, limit: int, window: int, now: int
    ) -> RateLimitResult:
        """Apply the fail-open / fail-closed policy when the store is down."""
        if self.fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied."
            )
            return RateLimitResult(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at=now + window,
                retry_after_seconds=max(1, math.ceil(window / 1000)),
            )

        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True, limit=limit, remaining=limit, reset_at=now + window
        )

    async def reset(self, identifier: str) -> None:
        """Forget the counter for an identifier."""
        await self.store.expire(identifier)

    async def sweep(self) -> int:
        """Remove expired windows from the store."""
        try:
            removed = await self.store.sweep(self._clock())
        except RateLimitStoreError as e:
            logger.warning(f"Rate limit sweep skipped due to {e.error_type}")
            return 0
        if removed:
            logger.debug(f"Rate limit sweep removed {removed} expired entries")
        return removed

    async def close(self) -> None:
        await self.store.close()


def build_rate_limit_store(use_redis: bool, redis_url: str) -> RateLimitStore:
    """Redis store when ``use_redis``, else an in-memory one."""
    if use_redis:
        logger.info("Using Redis rate limit store")
        return RedisRateLimitStore(redis_url=redis_url)
    logger.debug("Using in-memory rate limit store")
    return InMemoryRateLimitStore()


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the process-wide rate limiter (created on first use)."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(
            store=build_rate_limit_store(settings.redis_enabled, settings.redis_url),
            max_requests=settings.rate_limit_max_requests,
            window_ms=settings.rate_limit_window_ms,
            fail_closed=settings.rate_limit_fail_closed,
        )
    return _rate_limiter


def reset_rate_limiter(limiter: Optional[RateLimiter] = None) -> None:
    """Replace the process-wide rate limiter (for testing)."""
    global _rate_limiter
    _rate_limiter = limiter


async def check_rate_limit(
    identifier: str,
    max_requests: Optional[int] = None,
    window_ms: Optional[int] = None,
) -> RateLimitResult:
    """Check ``identifier`` against the process-wide rate limiter."""
    return await get_rate_limiter().check(identifier, max_requests, window_ms)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Response headers describing a rate limit decision."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at // 1000),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def run_periodic_sweep(limiter: RateLimiter, interval_seconds: float) -> None:
    """Sweep expired windows every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await limiter.sweep()
        except Exception:
            logger.exception("Rate limit sweep failed")
