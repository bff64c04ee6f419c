"""Prometheus metrics for ShortFlow.

Defines operational metrics for the workflow, effect dispatch and the
deadline scan.
"""

from prometheus_client import Counter, Gauge, Histogram

# Workflow metrics
transitions_total = Counter(
    "shortflow_transitions_total",
    "Total transition requests handled by the workflow service",
    ["from_status", "to_status", "outcome"]  # outcome: applied|noop|rejected|stale
)

stale_state_conflicts_total = Counter(
    "shortflow_stale_state_conflicts_total",
    "Compare-and-swap conflicts on a short (concurrent modification)",
)

# Effect dispatch metrics
effects_dispatched_total = Counter(
    "shortflow_effects_dispatched_total",
    "Effects dispatched after a persisted transition",
    ["effect_type", "status"]  # status: delivered|deferred|failed
)

effect_dispatch_duration_seconds = Histogram(
    "shortflow_effect_dispatch_duration_seconds",
    "Time spent dispatching a single effect in seconds",
    ["effect_type"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Deadline metrics
late_shorts = Gauge(
    "shortflow_late_shorts",
    "Shorts past their deadline at the last deadline scan",
)

deadline_notifications_total = Counter(
    "shortflow_deadline_notifications_total",
    "Deadline notifications emitted by the deadline scan",
    ["kind"]  # kind: SHORT_DEADLINE_REMINDER|SHORT_LATE
)
