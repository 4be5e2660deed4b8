"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_outcomes = Counter(
    'booking_outcomes_total',
    'Booking requests by resulting status',
    ['status']  # confirmed, hold, waitlisted, rejected
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking engine operation latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled by their owner',
    ['previous_status']
)

# Waitlist / hold lifecycle
waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Waitlisted bookings promoted to confirmed'
)

holds_expired = Counter(
    'holds_expired_total',
    'Holds released because their TTL elapsed',
    ['path']  # sweep, lazy
)

# Concurrency
engine_retries = Counter(
    'booking_engine_retries_total',
    'Operations retried after a stale per-event snapshot'
)

engine_conflicts = Counter(
    'booking_engine_conflicts_total',
    'Operations abandoned after exhausting retries or lock waits'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_outcome(status: str):
    booking_outcomes.labels(status=status).inc()


def record_cancellation(previous_status: str):
    cancellations.labels(previous_status=previous_status).inc()


def record_promotions(count: int):
    if count:
        waitlist_promotions.inc(count)


def record_expired_holds(count: int, path: str):
    if count:
        holds_expired.labels(path=path).inc(count)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
