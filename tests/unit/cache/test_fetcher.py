"""Tests for cache-aware fetching and stale-while-revalidate."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from applytrack.cache import MISS, DataCache
from applytrack.cache.keys import CacheKeys
from applytrack.config import Settings
from applytrack.observability import cache_key_var


class TestFetchCached:
    """Test read-through fetching."""

    async def test_miss_fetches_and_caches(self, cache: DataCache) -> None:
        """First call fetches, second is served from cache."""
        fn = AsyncMock(return_value=["a"])

        first = await cache.fetch_cached("user_u1_apps", fn, 5)
        second = await cache.fetch_cached("user_u1_apps", fn, 5)

        assert first == ["a"]
        assert second is first
        fn.assert_awaited_once()

    async def test_concurrent_calls_fetch_once(self, cache: DataCache) -> None:
        """Concurrent callers share one fetch and the identical value."""
        calls = 0

        async def fetch() -> dict[str, int]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return {"n": calls}

        results = await asyncio.gather(
            *(cache.fetch_cached("user_u1_apps", fetch, 5) for _ in range(10))
        )

        assert calls == 1
        assert all(r is results[0] for r in results)

    async def test_fetch_binds_cache_key_log_context(self, cache: DataCache) -> None:
        """The fetch function runs with the cache key bound for logging."""

        async def fetch() -> str:
            return cache_key_var.get()

        key = CacheKeys.resumes("u1")
        assert await cache.fetch_cached(key, fetch) == str(key)
        assert cache_key_var.get() == ""

    async def test_refetch_after_ttl(self, cache: DataCache, clock) -> None:
        """An expired entry is a hard miss."""
        fn = AsyncMock(side_effect=["old", "new"])

        await cache.fetch_cached("k", fn, 1.0)
        clock.advance(1.001)

        assert await cache.fetch_cached("k", fn, 1.0) == "new"
        assert fn.await_count == 2

    async def test_failure_not_cached(self, cache: DataCache) -> None:
        """Errors propagate and the next call retries."""
        fn = AsyncMock(side_effect=[RuntimeError("down"), "ok"])

        with pytest.raises(RuntimeError, match="down"):
            await cache.fetch_cached("k", fn, 5)
        assert cache.get("k") is MISS

        assert await cache.fetch_cached("k", fn, 5) == "ok"

    async def test_failure_reaches_every_waiter(self, cache: DataCache) -> None:
        """Concurrent waiters all receive the rejection."""

        async def fetch() -> None:
            await asyncio.sleep(0.01)
            raise RuntimeError("down")

        results = await asyncio.gather(
            cache.fetch_cached("k", fetch, 5),
            cache.fetch_cached("k", fetch, 5),
            return_exceptions=True,
        )

        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache.get_stats().pending_requests == 0

    async def test_default_ttl_from_policy(self, cache: DataCache, clock) -> None:
        """Without an explicit TTL the entity TTL applies."""
        key = CacheKeys.applications("u1")
        await cache.fetch_cached(key, AsyncMock(return_value=1))

        clock.advance(299)
        assert cache.get(key) == 1
        clock.advance(2)
        assert cache.get(key) is MISS

    async def test_waiter_cancellation_does_not_abort_fetch(self, cache: DataCache) -> None:
        """Cancelling one waiter leaves the shared fetch running."""
        gate = asyncio.Event()

        async def fetch() -> str:
            await gate.wait()
            return "v"

        first = asyncio.create_task(cache.fetch_cached("k", fetch, 5))
        second = asyncio.create_task(cache.fetch_cached("k", fetch, 5))
        await asyncio.sleep(0)

        first.cancel()
        gate.set()

        assert await second == "v"
        assert cache.get("k") == "v"


class TestStaleWhileRevalidate:
    """Test background refresh of entries near expiry."""

    async def test_fresh_entry_not_refreshed(self, cache: DataCache, clock) -> None:
        """Before the stale threshold no refresh starts."""
        fn = AsyncMock(return_value="v")
        await cache.fetch_cached("k", fn, 10)

        clock.advance(7.9)
        await cache.fetch_cached("k", fn, 10)

        assert cache.fetcher.refreshing == 0
        fn.assert_awaited_once()

    async def test_stale_value_returned_and_refreshed(self, cache: DataCache, clock) -> None:
        """Past the threshold the caller gets the cached value immediately."""
        fn = AsyncMock(side_effect=["old", "new"])
        await cache.fetch_cached("k", fn, 10)

        clock.advance(8.5)
        assert await cache.fetch_cached("k", fn, 10) == "old"

        refresh = cache.coalescer.get("k")
        assert refresh is not None
        await refresh

        assert cache.get("k") == "new"
        assert cache.fetcher.refreshing == 0

    async def test_only_one_refresh_in_flight(self, cache: DataCache, clock) -> None:
        """Repeated stale reads share the running refresh."""
        gate = asyncio.Event()
        calls = 0

        async def fetch() -> int:
            nonlocal calls
            calls += 1
            if calls > 1:
                await gate.wait()
            return calls

        await cache.fetch_cached("k", fetch, 10)
        clock.advance(9)

        values = [await cache.fetch_cached("k", fetch, 10) for _ in range(3)]
        assert values == [1, 1, 1]
        assert cache.fetcher.refreshing == 1

        gate.set()
        await cache.coalescer.get("k")
        assert calls == 2

    async def test_refresh_failure_is_swallowed(
        self, cache: DataCache, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failed refresh keeps the stale entry and is only logged."""
        fn = AsyncMock(side_effect=["stale", RuntimeError("down")])
        await cache.fetch_cached("k", fn, 10)
        entry_before = cache.store.peek("k")

        clock.advance(9)
        with caplog.at_level(logging.WARNING, logger="applytrack.cache.fetcher"):
            assert await cache.fetch_cached("k", fn, 10) == "stale"
            refresh = cache.coalescer.get("k")
            with pytest.raises(RuntimeError):
                await refresh

        assert cache.store.peek("k") is entry_before
        assert cache.get("k") == "stale"
        assert "Background refresh failed for k" in caplog.text

    async def test_expired_entry_is_hard_miss(self, cache: DataCache, clock) -> None:
        """Past the TTL the caller waits for the fetch."""
        fn = AsyncMock(side_effect=["old", "new"])
        await cache.fetch_cached("k", fn, 10)

        clock.advance(10)
        assert await cache.fetch_cached("k", fn, 10) == "new"
        assert cache.fetcher.refreshing == 0

    async def test_disabled_stale_ratio(self, clock) -> None:
        """stale_ratio=None turns revalidation off."""
        cache = DataCache(clock=clock, stale_ratio=None)
        fn = AsyncMock(return_value="v")
        await cache.fetch_cached("k", fn, 10)

        clock.advance(9.9)
        await cache.fetch_cached("k", fn, 10)
        assert cache.fetcher.refreshing == 0

    @pytest.mark.parametrize("ratio", [0.0, 1.0, -0.5])
    def test_invalid_stale_ratio(self, ratio: float) -> None:
        """The ratio must lie in (0, 1); None is the only way to disable it."""
        with pytest.raises(ValueError):
            DataCache(stale_ratio=ratio)

    def test_settings_reject_zero_stale_ratio(self) -> None:
        """A zero ratio is rejected by settings as well."""
        with pytest.raises(ValidationError):
            Settings(stale_ratio=0.0)
