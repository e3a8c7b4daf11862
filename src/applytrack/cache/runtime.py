"""DataCache: the cache surface exposed to services and UI-facing hooks.

One DataCache owns one store, one coalescer, the fetcher and the
invalidation API, so every subsystem shares a single key space and a
single invalidation path. Services receive a DataCache by injection; the
process-wide default instance is created lazily from settings.

Usage:
    cache = DataCache()

    apps = await cache.fetch_cached(
        CacheKeys.applications(uid), lambda: store_apps(uid)
    )

    # After a write
    cache.invalidate_entity(EntityType.APPLICATIONS, uid)
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, TypeVar

from applytrack.cache.coalescer import RequestCoalescer
from applytrack.cache.fetcher import DEFAULT_STALE_RATIO, CachedFetcher
from applytrack.cache.invalidation import CacheInvalidator
from applytrack.cache.keys import CacheKey, EntityType
from applytrack.cache.maintenance import DEFAULT_CLEANUP_INTERVAL, CacheJanitor
from applytrack.cache.policy import TtlPolicy
from applytrack.cache.store import DEFAULT_MAX_ENTRIES, MISS, CacheStats, Clock, TTLCacheStore
from applytrack.config import Settings, settings

T = TypeVar("T")


class DataCache:
    """Read-through TTL cache with request coalescing and SWR refresh."""

    def __init__(
        self,
        *,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        policy: TtlPolicy | None = None,
        stale_ratio: float | None = DEFAULT_STALE_RATIO,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Clock = time.monotonic,
    ) -> None:
        self.policy = policy or TtlPolicy()
        self.store = TTLCacheStore(max_entries=max_entries, clock=clock)
        self.coalescer = RequestCoalescer()
        self.fetcher = CachedFetcher(
            self.store, self.coalescer, policy=self.policy, stale_ratio=stale_ratio
        )
        self.invalidator = CacheInvalidator(self.store, self.coalescer)
        self.janitor = CacheJanitor(self.store, interval=cleanup_interval)

    @classmethod
    def from_settings(cls, config: Settings) -> DataCache:
        """Build a cache configured from application settings."""
        return cls(
            max_entries=config.max_entries,
            policy=TtlPolicy.from_settings(config),
            stale_ratio=config.stale_ratio,
            cleanup_interval=config.cleanup_interval,
        )

    # -------------------------------------------------------------------------
    # Reads and writes
    # -------------------------------------------------------------------------

    async def fetch_cached(
        self,
        key: str | CacheKey,
        fn: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value or fetch it once for all concurrent callers."""
        return await self.fetcher.fetch(key, fn, ttl)

    def get(self, key: str | CacheKey) -> Any:
        """Fresh cached value or MISS. Never fetches."""
        return self.store.get(str(key))

    def set(self, key: str | CacheKey, value: Any, ttl: float | None = None) -> None:
        """Store a value directly (e.g. preloaded data)."""
        self.store.set(str(key), value, self.ttl_for(key) if ttl is None else ttl)

    def update_cached(self, key: str | CacheKey, fn: Callable[[Any], Any]) -> bool:
        """Replace a fresh value with fn(value), keeping its expiry.

        `fn` must build a new value rather than mutate its argument.
        Returns False when there is nothing fresh to update.
        """
        current = self.store.get(str(key))
        if current is MISS:
            return False
        return self.store.replace_value(str(key), fn(current))

    def ttl_for(self, key: str | CacheKey | EntityType) -> float:
        """Policy TTL for a key or entity type."""
        return self.policy.ttl_for(key)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate(self, key: str | CacheKey) -> int:
        return self.invalidator.invalidate(key)

    def invalidate_pattern(self, pattern: str) -> int:
        return self.invalidator.invalidate_pattern(pattern)

    def invalidate_owner(self, owner_id: str) -> int:
        return self.invalidator.invalidate_owner(owner_id)

    def invalidate_entity(self, entity: EntityType, owner_id: str) -> int:
        return self.invalidator.invalidate_entity(entity, owner_id)

    def clear(self) -> int:
        """Remove all entries and detach all pending requests.

        Callers already awaiting a detached request still receive its
        result or exception.
        """
        return self.invalidator.invalidate_all()

    # -------------------------------------------------------------------------
    # Maintenance and introspection
    # -------------------------------------------------------------------------

    def cleanup(self) -> int:
        """Sweep expired entries now."""
        return self.store.cleanup()

    def get_stats(self) -> CacheStats:
        """Introspection only; no side effects on entries."""
        return self.store.stats(pending_requests=len(self.coalescer))

    async def start(self) -> None:
        """Start the periodic cleanup task."""
        await self.janitor.start()

    async def stop(self) -> None:
        """Stop the periodic cleanup task."""
        await self.janitor.stop()

    async def __aenter__(self) -> DataCache:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


# Process-wide default instance
_default_cache: DataCache | None = None


def get_default_cache() -> DataCache:
    """Get or create the process-wide cache."""
    global _default_cache
    if _default_cache is None:
        _default_cache = DataCache.from_settings(settings)
    return _default_cache


def set_default_cache(cache: DataCache) -> None:
    """Install a cache as the process-wide default."""
    global _default_cache
    _default_cache = cache


def reset_default_cache() -> None:
    """Drop the process-wide cache; the next access creates a fresh one."""
    global _default_cache
    if _default_cache is not None:
        _default_cache.clear()
    _default_cache = None
