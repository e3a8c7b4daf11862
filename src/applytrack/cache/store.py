"""In-memory TTL cache store.

Maps a cache key to (value, created_at, ttl):
- Expiry is lazy: an expired entry reads as MISS but stays in place
  until the next cleanup() sweep
- Total entries are bounded; the least recently used entry is evicted
  when a write would exceed the bound
- Entries are replaced wholesale on write, never mutated in place

The store does no I/O and has no locking: all mutations happen inside a
single synchronous turn of the event loop.
"""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from dataclasses import asdict, dataclass
from typing import Any, Final, Generic, TypeVar

import orjson

from applytrack.observability.metrics import record_evictions

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

DEFAULT_MAX_ENTRIES = 1000


class _Miss:
    """Sentinel type for a cache miss (None is a cacheable value)."""

    _instance: _Miss | None = None

    def __new__(cls) -> _Miss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS: Final = _Miss()


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value with its creation time and time-to-live (seconds)."""

    key: str
    value: T
    created_at: float
    ttl: float

    def age(self, now: float) -> float:
        """Seconds since the entry was written."""
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        """An entry is expired once its age reaches its TTL."""
        return now - self.created_at >= self.ttl


@dataclass
class CacheStats:
    """Point-in-time statistics for a cache store."""

    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    pending_requests: int = 0
    approx_memory_bytes: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of reads served from cache."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for debug surfaces."""
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data


def _json_default(obj: Any) -> Any:
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump(mode="json")
    return str(obj)


def _approx_size(key: str, value: Any) -> int:
    try:
        payload = orjson.dumps(value, default=_json_default, option=orjson.OPT_NON_STR_KEYS)
    except orjson.JSONEncodeError:
        payload = repr(value).encode()
    return len(key) + len(payload)


class TTLCacheStore:
    """Key-value store with lazy TTL expiry and an LRU size bound."""

    def __init__(
        self,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.clock = clock
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_entry(key, record=False) is not None

    def keys(self) -> Iterator[str]:
        """Iterate over all stored keys, expired ones included."""
        return iter(list(self._entries))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_entry(self, key: str, record: bool = True) -> CacheEntry[Any] | None:
        """Get the fresh entry for a key, or None on miss.

        An expired entry is a miss but is not deleted here.
        """
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self.clock()):
            if record:
                self._misses += 1
            return None

        self._entries.move_to_end(key)
        if record:
            self._hits += 1
        return entry

    def get(self, key: str, default: Any = MISS) -> Any:
        """Get a fresh value, or `default` (MISS) when absent or expired."""
        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    def peek(self, key: str) -> CacheEntry[Any] | None:
        """Get the raw entry, expired or not, without touching LRU order or stats."""
        return self._entries.get(key)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl: float) -> CacheEntry[Any]:
        """Store a value unconditionally, resetting its creation time."""
        if ttl < 0:
            raise ValueError("ttl must not be negative")

        entry = CacheEntry(key=key, value=value, created_at=self.clock(), ttl=ttl)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._enforce_bound()
        return entry

    def replace_value(self, key: str, value: Any) -> bool:
        """Swap the value of a fresh entry keeping its creation time and TTL.

        Returns False (and stores nothing) if there is no fresh entry.
        """
        entry = self.get_entry(key, record=False)
        if entry is None:
            return False
        self._entries[key] = CacheEntry(
            key=key, value=value, created_at=entry.created_at, ttl=entry.ttl
        )
        return True

    def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def delete_matching(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every entry whose key matches a regex (re.search semantics)."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [key for key in self._entries if regex.search(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup(self) -> int:
        """Sweep expired entries. Returns the number removed."""
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            self._evictions += len(expired)
            record_evictions("expired", len(expired))
            logger.info(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def _enforce_bound(self) -> None:
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            record_evictions("size")
            logger.debug(f"Evicted least recently used cache entry: {key}")

    def stats(self, pending_requests: int = 0) -> CacheStats:
        """Compute statistics. Read-only apart from the sizing pass."""
        now = self.clock()
        valid = 0
        expired = 0
        memory = 0
        for key, entry in self._entries.items():
            if entry.is_expired(now):
                expired += 1
            else:
                valid += 1
            memory += _approx_size(key, entry.value)

        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=valid,
            expired_entries=expired,
            pending_requests=pending_requests,
            approx_memory_bytes=memory,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )
