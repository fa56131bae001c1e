"""Prometheus metrics for the phase workflow engine."""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

PHASE_TRANSITIONS = Counter(
    "attune_phase_transitions_total",
    "Committed phase transitions",
    labelnames=["from_phase", "to_phase"],
)

TRANSITIONS_BLOCKED = Counter(
    "attune_transitions_blocked_total",
    "Transition evaluations that held the session in place",
    labelnames=["phase", "reason"],
)

FIELD_REJECTIONS = Counter(
    "attune_field_rejections_total",
    "Submitted field values rejected by schema validation",
    labelnames=["phase", "field", "error_type"],
)

LOOP_REENTRIES = Counter(
    "attune_loop_reentries_total",
    "Re-entries of loopable phases",
    labelnames=["loop_family"],
)

SUBMIT_LATENCY = Histogram(
    "attune_submit_latency_seconds",
    "Latency of controller operations",
    labelnames=["operation"],
    buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

ACTIVE_SESSIONS = Gauge(
    "attune_active_sessions",
    "Sessions started and not yet completed",
)


def start_metrics_server(port: int) -> None:
    """Serve the default registry on ``http://0.0.0.0:{port}/metrics``."""
    start_http_server(port)
