"""Tests for fixed-window rate limiting."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
import redis

from folioguard.app.middleware.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitResult,
    RateLimitStoreError,
    RedisRateLimitStore,
    build_rate_limit_store,
    get_rate_limiter,
    rate_limit_headers,
    reset_rate_limiter,
)
from folioguard.app.middleware import rate_limit as rate_limit_module
from folioguard.app.middleware.rate_limit.backends import INCREMENT_SCRIPT


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(
        store=InMemoryRateLimitStore(),
        max_requests=3,
        window_ms=60_000,
        fail_closed=False,
        clock=clock,
    )


class TestRateLimiter:
    """Tests for RateLimiter over the in-memory store."""

    @pytest.mark.asyncio
    async def test_allows_requests_up_to_limit(self, limiter):
        """The first max_requests calls in a window are allowed."""
        results = [await limiter.check("1.2.3.4") for _ in range(3)]

        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]
        assert results[0].limit == 3

    @pytest.mark.asyncio
    async def test_denies_request_over_limit(self, limiter):
        """The request after the limit is denied with a retry hint."""
        for _ in range(3):
            await limiter.check("1.2.3.4")

        result = await limiter.check("1.2.3.4")

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after_seconds == 60

    @pytest.mark.asyncio
    async def test_retry_after_counts_down_with_window(self, limiter, clock):
        """retry_after_seconds is the time left in the window, rounded up."""
        for _ in range(3):
            await limiter.check("1.2.3.4")
        clock.advance(45_500)

        result = await limiter.check("1.2.3.4")

        assert result.allowed is False
        assert result.retry_after_seconds == 15

    @pytest.mark.asyncio
    async def test_retry_after_is_at_least_one_second(self, limiter, clock):
        for _ in range(3):
            await limiter.check("1.2.3.4")
        clock.advance(59_999)

        result = await limiter.check("1.2.3.4")

        assert result.allowed is False
        assert result.retry_after_seconds == 1

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, limiter, clock):
        """A new window starts once the old one has passed."""
        for _ in range(4):
            await limiter.check("1.2.3.4")
        clock.advance(60_000)

        result = await limiter.check("1.2.3.4")

        assert result.allowed is True
        assert result.remaining == 2
        assert result.reset_at == clock.now + 60_000

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, limiter):
        for _ in range(4):
            await limiter.check("1.2.3.4")

        result = await limiter.check("upload:1.2.3.4")

        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_per_call_overrides(self, limiter):
        """max_requests and window_ms can be overridden per check."""
        first = await limiter.check("upload:5.6.7.8", max_requests=1, window_ms=10_000)
        second = await limiter.check("upload:5.6.7.8", max_requests=1, window_ms=10_000)

        assert first.allowed is True
        assert second.allowed is False
        assert second.retry_after_seconds == 10

    @pytest.mark.asyncio
    async def test_concurrent_checks_never_exceed_limit(self, clock):
        """Concurrent checks for one identifier admit exactly the limit."""
        limiter = RateLimiter(max_requests=5, window_ms=60_000, fail_closed=False, clock=clock)

        results = await asyncio.gather(*(limiter.check("burst") for _ in range(20)))

        assert sum(1 for r in results if r.allowed) == 5

    @pytest.mark.asyncio
    async def test_reset_forgets_counter(self, limiter):
        for _ in range(4):
            await limiter.check("1.2.3.4")

        await limiter.reset("1.2.3.4")
        result = await limiter.check("1.2.3.4")

        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_sweep_removes_expired_windows(self, limiter, clock):
        await limiter.check("old")
        clock.advance(30_000)
        await limiter.check("new")
        clock.advance(30_000)

        removed = await limiter.sweep()

        assert removed == 1
        assert len(limiter.store) == 1


class TestStoreFailurePolicy:
    """Tests for fail-open and fail-closed behaviour."""

    @pytest.fixture
    def broken_store(self):
        store = Mock(spec=InMemoryRateLimitStore)
        store.increment = AsyncMock(side_effect=RateLimitStoreError("connection_error"))
        return store

    @pytest.mark.asyncio
    async def test_fail_open_allows(self, broken_store, clock):
        limiter = RateLimiter(store=broken_store, max_requests=3, fail_closed=False, clock=clock)

        result = await limiter.check("1.2.3.4")

        assert result.allowed is True
        assert result.remaining == 3

    @pytest.mark.asyncio
    async def test_fail_closed_denies(self, broken_store, clock):
        limiter = RateLimiter(
            store=broken_store, max_requests=3, window_ms=60_000, fail_closed=True, clock=clock
        )

        result = await limiter.check("1.2.3.4")

        assert result.allowed is False
        assert result.retry_after_seconds == 60

    @pytest.mark.asyncio
    async def test_sweep_failure_is_not_raised(self, broken_store, clock):
        broken_store.sweep = AsyncMock(side_effect=RateLimitStoreError("timeout"))
        limiter = RateLimiter(store=broken_store, fail_closed=False, clock=clock)

        assert await limiter.sweep() == 0


class TestInMemoryRateLimitStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_first_increment_starts_window(self):
        store = InMemoryRateLimitStore()

        entry = await store.increment("a", 1000, now=5000)

        assert entry.count == 1
        assert entry.window_reset_at == 6000

    @pytest.mark.asyncio
    async def test_get_drops_expired_entry(self):
        store = InMemoryRateLimitStore()
        await store.increment("a", 1000, now=5000)

        assert (await store.get("a", now=5999)).count == 1
        assert await store.get("a", now=6000) is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_returned_entry_is_a_copy(self):
        store = InMemoryRateLimitStore()
        entry = await store.increment("a", 1000, now=0)
        entry.count = 99

        assert (await store.get("a", now=0)).count == 1

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        """Exceeding max_entries evicts the least recently used 20%."""
        store = InMemoryRateLimitStore(max_entries=10)
        for i in range(10):
            await store.increment(f"id-{i}", 60_000, now=0)
        # Touch id-0 so it is no longer the oldest
        await store.increment("id-0", 60_000, now=0)

        await store.increment("id-10", 60_000, now=0)

        assert len(store) == 9
        assert await store.get("id-0", now=0) is not None
        assert await store.get("id-1", now=0) is None
        assert await store.get("id-2", now=0) is None
        assert await store.get("id-3", now=0) is not None


class TestRedisRateLimitStore:
    """Tests for the Redis store against a mocked client."""

    @pytest.mark.asyncio
    async def test_increment_runs_script(self):
        client = AsyncMock()
        client.eval.return_value = [2, 45_000]
        store = RedisRateLimitStore(redis_client=client)

        entry = await store.increment("1.2.3.4", 60_000, now=1000)

        client.eval.assert_awaited_once_with(
            INCREMENT_SCRIPT, 1, "folioguard:ratelimit:1.2.3.4", 60_000
        )
        assert entry.count == 2
        assert entry.window_reset_at == 46_000

    @pytest.mark.asyncio
    async def test_connection_error_becomes_store_error(self):
        client = AsyncMock()
        client.eval.side_effect = redis.ConnectionError("refused")
        store = RedisRateLimitStore(redis_client=client)

        with pytest.raises(RateLimitStoreError) as exc_info:
            await store.increment("1.2.3.4", 60_000, now=0)

        assert exc_info.value.error_type == "connection_error"

    @pytest.mark.asyncio
    async def test_timeout_becomes_store_error(self):
        client = AsyncMock()
        client.eval.side_effect = redis.TimeoutError("slow")
        store = RedisRateLimitStore(redis_client=client)

        with pytest.raises(RateLimitStoreError) as exc_info:
            await store.increment("1.2.3.4", 60_000, now=0)

        assert exc_info.value.error_type == "timeout"

    @pytest.mark.asyncio
    async def test_limiter_fails_open_when_redis_down(self):
        client = AsyncMock()
        client.eval.side_effect = redis.ConnectionError("refused")
        limiter = RateLimiter(
            store=RedisRateLimitStore(redis_client=client), max_requests=2, fail_closed=False
        )

        result = await limiter.check("1.2.3.4")

        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_expire_deletes_key(self):
        client = AsyncMock()
        store = RedisRateLimitStore(redis_client=client, key_prefix="test:")

        await store.expire("abc")

        client.delete.assert_awaited_once_with("test:abc")

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        client = AsyncMock()
        store = RedisRateLimitStore(redis_client=client)

        await store.close()

        client.aclose.assert_awaited_once()


class TestRateLimitHeaders:
    """Tests for rate_limit_headers."""

    def test_allowed_headers(self):
        headers = rate_limit_headers(
            RateLimitResult(allowed=True, limit=10, remaining=7, reset_at=1_700_000_000_500)
        )

        assert headers == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "7",
            "X-RateLimit-Reset": "1700000000",
        }

    def test_denied_headers_include_retry_after(self):
        headers = rate_limit_headers(
            RateLimitResult(
                allowed=False, limit=10, remaining=0, reset_at=0, retry_after_seconds=42
            )
        )

        assert headers["Retry-After"] == "42"


class TestProcessLimiter:
    """Tests for the process-wide limiter and store selection."""

    @pytest.fixture(autouse=True)
    def _reset(self):
        reset_rate_limiter()
        yield
        reset_rate_limiter()

    def test_fails_open_unless_told_otherwise(self):
        assert RateLimiter().fail_closed is False

    def test_fail_policy_comes_from_settings(self, monkeypatch):
        monkeypatch.setattr(rate_limit_module.settings, "rate_limit_fail_closed", True)

        assert get_rate_limiter().fail_closed is True

    def test_redis_store_uses_given_url(self):
        store = build_rate_limit_store(True, "redis://cache.internal:6380/2")

        assert isinstance(store, RedisRateLimitStore)
        assert store._redis_url == "redis://cache.internal:6380/2"

    def test_memory_store_without_redis(self):
        assert isinstance(build_rate_limit_store(False, "redis://unused"), InMemoryRateLimitStore)
