"""Prometheus metrics for the applytrack cache layer.

Provides metrics collection and exposure:
- Cache metrics (hits, misses, coalesced joins, evictions)
- Background refresh outcomes
- Document store fetch latency

Usage:
    from applytrack.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(entity="applications").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client import generate_latest as prometheus_generate_latest

from applytrack.config import settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        """No-op."""
        pass

    def observe(self, value: float) -> None:
        """No-op."""
        pass


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    enabled: bool = True

    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_coalesced_total: Any = None
    cache_refresh_total: Any = None
    cache_evictions_total: Any = None
    cache_invalidations_total: Any = None
    fetch_duration_seconds: Any = None

    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not self.enabled:
            noop = NoOpMetric()
            self.cache_hits_total = noop
            self.cache_misses_total = noop
            self.cache_coalesced_total = noop
            self.cache_refresh_total = noop
            self.cache_evictions_total = noop
            self.cache_invalidations_total = noop
            self.fetch_duration_seconds = noop
            self._initialized = True
            logger.info("Metrics are disabled")
            return

        # Private registry so several caches (and test runs) never collide
        self._registry = CollectorRegistry()

        self.cache_hits_total = Counter(
            "applytrack_cache_hits_total",
            "Cache hits",
            ["entity"],
            registry=self._registry,
        )

        self.cache_misses_total = Counter(
            "applytrack_cache_misses_total",
            "Cache misses",
            ["entity"],
            registry=self._registry,
        )

        self.cache_coalesced_total = Counter(
            "applytrack_cache_coalesced_total",
            "Callers that joined an in-flight fetch",
            ["entity"],
            registry=self._registry,
        )

        self.cache_refresh_total = Counter(
            "applytrack_cache_refresh_total",
            "Background stale-while-revalidate refreshes",
            ["entity", "outcome"],
            registry=self._registry,
        )

        self.cache_evictions_total = Counter(
            "applytrack_cache_evictions_total",
            "Entries removed by expiry sweep or size bound",
            ["reason"],
            registry=self._registry,
        )

        self.cache_invalidations_total = Counter(
            "applytrack_cache_invalidations_total",
            "Entries removed by explicit invalidation",
            ["kind"],
            registry=self._registry,
        )

        self.fetch_duration_seconds = Histogram(
            "applytrack_fetch_duration_seconds",
            "Underlying fetch latency in seconds",
            ["entity"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

        self._initialized = True
        logger.debug("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return prometheus_generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry(enabled=settings.enable_metrics)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


def record_cache_hit(entity: str) -> None:
    """Record cache hit."""
    get_metrics().cache_hits_total.labels(entity=entity).inc()


def record_cache_miss(entity: str) -> None:
    """Record cache miss."""
    get_metrics().cache_misses_total.labels(entity=entity).inc()


def record_coalesced(entity: str) -> None:
    """Record a caller joining an in-flight fetch."""
    get_metrics().cache_coalesced_total.labels(entity=entity).inc()


def record_refresh(entity: str, outcome: str) -> None:
    """Record a background refresh outcome ("success" or "failure")."""
    get_metrics().cache_refresh_total.labels(entity=entity, outcome=outcome).inc()


def record_evictions(reason: str, count: int = 1) -> None:
    """Record evicted entries.

    Args:
        reason: Why entries were removed ("expired", "size")
        count: Number of entries removed
    """
    if count:
        get_metrics().cache_evictions_total.labels(reason=reason).inc(count)


def record_invalidations(kind: str, count: int) -> None:
    """Record invalidated entries.

    Args:
        kind: Invalidation kind ("key", "pattern", "owner", "entity", "all")
        count: Number of entries removed
    """
    if count:
        get_metrics().cache_invalidations_total.labels(kind=kind).inc(count)


def record_fetch_duration(entity: str, duration: float) -> None:
    """Record underlying fetch duration in seconds."""
    get_metrics().fetch_duration_seconds.labels(entity=entity).observe(duration)
