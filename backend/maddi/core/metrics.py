"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP
http_request_duration = Histogram(
    'http_request_duration_seconds',
    'Request latency by route template',
    ['method', 'route', 'status'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Booking lifecycle metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking lifecycle transition attempts',
    ['transition', 'result']  # create/approve/reject/cancel/complete; success, conflict, invalid
)

approval_latency = Histogram(
    'booking_approval_latency_seconds',
    'Booking approval latency (overlap check + status write)',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

approval_retries = Counter(
    'booking_approval_retries_total',
    'Approval retries due to billboard version conflicts'
)

# Side effects
outbox_failures = Counter(
    'outbox_dispatch_failures_total',
    'Side-effect dispatch failures (never surfaced to callers)',
    ['channel']  # notification, email, change_feed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# Scheduled job
lifecycle_runs = Counter(
    'campaign_lifecycle_runs_total',
    'Campaign lifecycle job runs',
    ['result']  # success, error
)

lifecycle_milestones = Counter(
    'campaign_lifecycle_milestones_total',
    'Campaign milestones fired by the lifecycle job',
    ['milestone']  # started, ended
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


# Convenience functions for instrumentation
def record_transition(transition: str, result: str):
    """Record a lifecycle transition attempt. Result: success, conflict, invalid"""
    booking_transitions.labels(transition=transition, result=result).inc()


def record_outbox_failure(channel: str):
    outbox_failures.labels(channel=channel).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_milestone(milestone: str):
    lifecycle_milestones.labels(milestone=milestone).inc()


def observe_request(method: str, route: str, status_code: int, seconds: float):
    http_request_duration.labels(method=method, route=route, status=str(status_code)).observe(seconds)
