"""Observability module for applytrack.

Provides metrics and structured logging:
- Prometheus cache metrics
- JSON structured logging with owner and cache-key context
"""

from applytrack.observability.logging import (
    LogContext,
    cache_key_var,
    configure_logging,
    correlation_id_var,
    get_logger,
    owner_id_var,
)
from applytrack.observability.metrics import (
    MetricsRegistry,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    "correlation_id_var",
    "owner_id_var",
    "cache_key_var",
    # Metrics
    "MetricsRegistry",
    "metrics_registry",
    "get_metrics",
]
