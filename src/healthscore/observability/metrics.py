"""Prometheus metrics for client operations."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

OPERATION_COUNT = Counter(
    "healthscore_operations_total",
    "Total session operations",
    ["operation", "outcome"],
)
OPERATION_LATENCY = Histogram(
    "healthscore_operation_duration_seconds",
    "Session operation duration in seconds",
    ["operation"],
)
SIGNING_FLOWS = Counter(
    "healthscore_signing_flows_total",
    "Interactive decryption authorization signing flows",
    ["outcome"],
)


def record_operation(operation: str, outcome: str, duration: float) -> None:
    OPERATION_LATENCY.labels(operation=operation).observe(duration)
    OPERATION_COUNT.labels(operation=operation, outcome=outcome).inc()


def render_metrics() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
