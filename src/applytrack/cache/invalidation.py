"""Cache invalidation for write paths.

Create/update/delete operations call one of these before reporting
success, so the next read of the affected data is a guaranteed miss.

Invalidation also detaches any in-flight fetch for the matching keys:
the running fetch still settles for its current waiters, but its result
is not written back (it may predate the write) and the next read starts
a fresh fetch.

Example:
    invalidator = CacheInvalidator(store, coalescer)

    # One record changed
    invalidator.invalidate(CacheKeys.settings("u1"))

    # Everything cached for an entity collection (list, documents, pages)
    invalidator.invalidate_entity(EntityType.APPLICATIONS, "u1")

    # Everything cached for an owner
    invalidator.invalidate_owner("u1")
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from applytrack.cache.coalescer import RequestCoalescer
from applytrack.cache.keys import CacheKey, CacheKeys, EntityType
from applytrack.cache.store import TTLCacheStore
from applytrack.observability.metrics import record_invalidations

logger = logging.getLogger(__name__)


class InvalidationType(str, Enum):
    """Scope of a cache invalidation."""

    KEY = "key"
    PATTERN = "pattern"
    OWNER = "owner"
    ENTITY = "entity"
    ALL = "all"


class CacheInvalidator:
    """Removes entries and detaches in-flight fetches. Never fails."""

    def __init__(self, store: TTLCacheStore, coalescer: RequestCoalescer) -> None:
        self.store = store
        self.coalescer = coalescer

    def invalidate(self, key: str | CacheKey) -> int:
        """Invalidate a single key. Returns the number of entries removed."""
        key_str = str(key)
        removed = int(self.store.delete(key_str))
        self.coalescer.forget(key_str)
        self._record(InvalidationType.KEY, key_str, removed)
        return removed

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Invalidate every key matching a regex (searched anywhere in the key)."""
        return self._invalidate_matching(InvalidationType.PATTERN, pattern)

    def invalidate_owner(self, owner_id: str) -> int:
        """Invalidate every key of one owner."""
        return self._invalidate_matching(
            InvalidationType.OWNER, CacheKeys.owner_pattern(owner_id)
        )

    def invalidate_entity(self, entity: EntityType, owner_id: str) -> int:
        """Invalidate an entity's collection key and all its qualified variants."""
        return self._invalidate_matching(
            InvalidationType.ENTITY, CacheKeys.entity_pattern(entity, owner_id)
        )

    def invalidate_all(self) -> int:
        """Drop every entry and detach every in-flight fetch."""
        removed = self.store.clear()
        detached = self.coalescer.forget_all()
        record_invalidations(InvalidationType.ALL.value, removed)
        logger.info(f"Cache cleared: {removed} entries, {detached} pending requests detached")
        return removed

    def _invalidate_matching(
        self, kind: InvalidationType, pattern: str | re.Pattern[str]
    ) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        removed = self.store.delete_matching(regex)
        for key in self.coalescer.keys():
            if regex.search(key):
                self.coalescer.forget(key)
        self._record(kind, regex.pattern, removed)
        return removed

    def _record(self, kind: InvalidationType, target: str, removed: int) -> None:
        record_invalidations(kind.value, removed)
        logger.debug(f"Invalidated ({kind.value}) {target}: {removed} entries")
