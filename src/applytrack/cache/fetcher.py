"""Cache-aware fetching with stale-while-revalidate.

fetch(key, fn, ttl):
1. If a fetch for `key` is in flight, join it.
2. If the store holds a fresh entry, return it without calling `fn`.
   When the entry is past its staleness threshold (ttl * stale_ratio)
   a background refresh is started and the cached value is returned
   immediately.
3. Otherwise run `fn` through the coalescer and write the result into
   the store on success. Failures are never cached.

At most one underlying fetch per key is outstanding at any time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, TypeVar

from applytrack.cache.coalescer import RequestCoalescer
from applytrack.cache.keys import CacheKey, CacheKeys
from applytrack.cache.policy import TtlPolicy
from applytrack.cache.store import CacheEntry, TTLCacheStore
from applytrack.errors import StaleRefreshError
from applytrack.observability.logging import LogContext
from applytrack.observability.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_coalesced,
    record_fetch_duration,
    record_refresh,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STALE_RATIO = 0.8


class CachedFetcher:
    """Composes the TTL store and the coalescer into a read-through cache."""

    def __init__(
        self,
        store: TTLCacheStore,
        coalescer: RequestCoalescer,
        policy: TtlPolicy | None = None,
        stale_ratio: float | None = DEFAULT_STALE_RATIO,
    ) -> None:
        if stale_ratio is not None and not 0.0 < stale_ratio < 1.0:
            raise ValueError("stale_ratio must be in (0, 1)")
        self.store = store
        self.coalescer = coalescer
        self.policy = policy or TtlPolicy()
        self.stale_ratio = stale_ratio
        self._background: set[asyncio.Task[Any]] = set()

    async def fetch(
        self,
        key: str | CacheKey,
        fn: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for `key`, fetching it with `fn` on a miss.

        Args:
            key: Cache key (typed or rendered)
            fn: Zero-argument coroutine function producing the value
            ttl: Seconds to keep the result; defaults to the policy TTL

        Raises:
            Whatever `fn` raises, unchanged.
        """
        key_str = str(key)
        entity = CacheKeys.entity_label(key)
        ttl = self.policy.ttl_for(key) if ttl is None else ttl

        with LogContext(cache_key=key_str):
            pending = self.coalescer.get(key_str)
            if pending is not None and pending in self._background:
                # A revalidation is running; the entry it replaces is still fresh
                entry = self.store.get_entry(key_str)
                if entry is not None:
                    record_cache_hit(entity)
                    logger.debug(f"Cache hit during refresh: {key_str}")
                    return entry.value

            if pending is not None:
                record_coalesced(entity)
                logger.debug(f"Cache join in-flight: {key_str}")
                # Shield so one waiter's cancellation never aborts the shared fetch
                return await asyncio.shield(pending)

            entry = self.store.get_entry(key_str)
            if entry is not None:
                record_cache_hit(entity)
                logger.debug(f"Cache hit: {key_str}")
                if self.is_stale(entry):
                    self._refresh_in_background(key_str, fn, ttl, entity)
                return entry.value

            record_cache_miss(entity)
            logger.debug(f"Cache miss: {key_str}, fetching")
            task = self.coalescer.dedupe(
                key_str,
                self._timed(fn, entity),
                on_success=partial(self._write_back, key_str, ttl),
            )
            return await asyncio.shield(task)

    def is_stale(self, entry: CacheEntry[Any]) -> bool:
        """True when a fresh entry has entered its revalidation window."""
        if self.stale_ratio is None:
            return False
        now = self.store.clock()
        return not entry.is_expired(now) and entry.age(now) >= entry.ttl * self.stale_ratio

    def _refresh_in_background(
        self,
        key: str,
        fn: Callable[[], Awaitable[Any]],
        ttl: float,
        entity: str,
    ) -> None:
        if key in self.coalescer:
            return

        logger.debug(f"Cache stale, refreshing in background: {key}")
        task = self.coalescer.dedupe(
            key,
            self._timed(fn, entity),
            on_success=partial(self._write_back, key, ttl),
        )
        self._background.add(task)
        task.add_done_callback(partial(self._on_refresh_done, key, entity))

    @property
    def refreshing(self) -> int:
        """Number of background refreshes in flight."""
        return len(self._background)

    def _on_refresh_done(self, key: str, entity: str, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            record_refresh(entity, "success")
            return

        record_refresh(entity, "failure")
        error = StaleRefreshError(key)
        error.__cause__ = exc
        logger.warning(str(error), exc_info=(type(exc), exc, exc.__traceback__))

    def _write_back(self, key: str, ttl: float, value: Any) -> None:
        self.store.set(key, value, ttl)
        logger.debug(f"Cached: {key}")

    @staticmethod
    def _timed(
        fn: Callable[[], Awaitable[T]], entity: str
    ) -> Callable[[], Awaitable[T]]:
        async def run() -> T:
            start = time.perf_counter()
            try:
                return await fn()
            finally:
                record_fetch_duration(entity, time.perf_counter() - start)

        return run
