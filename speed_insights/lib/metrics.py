"""Prometheus metrics for drain ingestion and aggregation."""

from prometheus_client import Counter, Histogram


# Ingestion metrics
drain_batches_total = Counter(
    'drain_batches_total',
    'Drain deliveries processed',
    ['content_kind', 'status']
)

drain_events_total = Counter(
    'drain_events_total',
    'Normalized Web Vitals events accepted from the drain',
    ['metric_type']
)

# Aggregation metrics
aggregation_duration_seconds = Histogram(
    'aggregation_duration_seconds',
    'Time spent computing one aggregate, store read included',
    ['outcome'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)

store_operation_duration_seconds = Histogram(
    'store_operation_duration_seconds',
    'Event store call duration',
    ['operation'],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# HTTP metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request duration in seconds',
    ['endpoint', 'method', 'status'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0]
)


def record_drain_batch(content_kind: str, status: str):
    """Record one processed drain delivery.

    Args:
        content_kind: 'json' or 'ndjson'
        status: 'stored', 'skipped', 'malformed' or 'store_error'
    """
    drain_batches_total.labels(content_kind=content_kind, status=status).inc()


def record_drain_event(metric_type: str):
    """Record one accepted event by its metric type ('unknown' when none)."""
    drain_events_total.labels(metric_type=metric_type).inc()


def record_aggregation(outcome: str, duration_seconds: float):
    """Record aggregation duration.

    Args:
        outcome: 'ok', 'no_data' or 'error'
        duration_seconds: Wall time of the aggregation call
    """
    aggregation_duration_seconds.labels(outcome=outcome).observe(duration_seconds)


def record_store_operation(operation: str, duration_seconds: float):
    """Record the duration of an event store call."""
    store_operation_duration_seconds.labels(operation=operation).observe(duration_seconds)


def record_request_duration(endpoint: str, method: str, status: int, duration_seconds: float):
    """Record overall request duration.

    Args:
        endpoint: API endpoint path
        method: HTTP method (GET, POST, etc.)
        status: HTTP status code
        duration_seconds: Request duration in seconds
    """
    request_duration_seconds.labels(
        endpoint=endpoint,
        method=method,
        status=str(status)
    ).observe(duration_seconds)
