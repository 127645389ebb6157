"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency, including time spent waiting for the seat lock',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

booking_retries = Counter(
    'booking_retry_attempts_total',
    'Booking attempts rolled back and retried',
    ['reason']  # version_conflict, duplicate_reference
)

ticket_reference_collisions = Counter(
    'ticket_reference_collisions_total',
    'Generated ticket references that already existed'
)

booking_confirmations = Counter(
    'booking_confirmations_total',
    'Booking confirmation requests',
    ['result']  # confirmed, replayed, rejected
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Cancelled bookings',
    ['previous_status']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get: hit/miss, set: ok
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

seat_lock_fail_open = Gauge(
    'seat_lock_fail_open',
    'Distributed seat lock state (1=fell back to local lock, 0=redis lock in use)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, error"""
    booking_attempts.labels(status=status).inc()


def record_booking_retry(reason: str):
    booking_retries.labels(reason=reason).inc()


def record_confirmation(result: str):
    booking_confirmations.labels(result=result).inc()


def record_cache_operation(operation: str, hit: Optional[bool] = None):
    """Record cache operation. Reads count as hit or miss, writes as ok."""
    result = "ok" if hit is None else ("hit" if hit else "miss")
    cache_operations.labels(operation=operation, result=result).inc()
