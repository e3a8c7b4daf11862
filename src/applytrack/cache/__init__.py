"""Cache layer for applytrack.

Provides an in-memory read-through cache between callers and the
document store:
- TTL store with lazy expiry, periodic sweep and an LRU size bound
- In-flight request coalescing (one fetch per key at a time)
- Stale-while-revalidate background refresh
- Typed per-entity cache keys scoped by owner
- Explicit invalidation for write paths
"""

from applytrack.cache.coalescer import RequestCoalescer
from applytrack.cache.fetcher import CachedFetcher
from applytrack.cache.invalidation import CacheInvalidator, InvalidationType
from applytrack.cache.keys import CacheKey, CacheKeys, EntityType
from applytrack.cache.maintenance import CacheJanitor
from applytrack.cache.policy import TtlPolicy
from applytrack.cache.runtime import (
    DataCache,
    get_default_cache,
    reset_default_cache,
    set_default_cache,
)
from applytrack.cache.store import MISS, CacheEntry, CacheStats, TTLCacheStore

__all__ = [
    # Facade
    "DataCache",
    "get_default_cache",
    "set_default_cache",
    "reset_default_cache",
    # Keys and policy
    "CacheKey",
    "CacheKeys",
    "EntityType",
    "TtlPolicy",
    # Components
    "TTLCacheStore",
    "CacheEntry",
    "CacheStats",
    "MISS",
    "RequestCoalescer",
    "CachedFetcher",
    "CacheInvalidator",
    "InvalidationType",
    "CacheJanitor",
]
