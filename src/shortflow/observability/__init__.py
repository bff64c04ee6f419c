"""Observability module for ShortFlow.

Provides structured logging, correlation IDs and Prometheus metrics.
"""

from .logging_config import configure_logging
from .metrics import (
    deadline_notifications_total,
    effect_dispatch_duration_seconds,
    effects_dispatched_total,
    late_shorts,
    stale_state_conflicts_total,
    transitions_total,
)
from .request_id import (
    correlation_id_var,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    # Logging
    "configure_logging",
    # Metrics
    "deadline_notifications_total",
    "effect_dispatch_duration_seconds",
    "effects_dispatched_total",
    "late_shorts",
    "stale_state_conflicts_total",
    "transitions_total",
    # Correlation ID
    "correlation_id_var",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]
