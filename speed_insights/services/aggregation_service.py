"""Aggregation of stored Web Vitals events.

Computes nearest-rank percentiles per metric, p75 breakdowns per device
class and per route, and ratings against the Web Vitals thresholds, for one
project over one closed time window. Nothing is cached: each call reads the
store and builds a fresh AggregatedMetrics.
"""

import logging
import math
import time
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from speed_insights.lib.errors import MissingProjectIdError, StoreUnavailableError
from speed_insights.lib.metrics import record_aggregation
from speed_insights.models.web_vitals import (
    DEVICE_METRICS,
    METRIC_NAMES,
    ROUTE_METRICS,
    AggregatedMetrics,
    DeviceBreakdown,
    DeviceMetrics,
    DeviceType,
    MetricsBreakdown,
    MetricStats,
    Period,
    RouteMetrics,
    SpeedInsightsEvent,
)
from speed_insights.services.event_store import EventStore
from speed_insights.services.rating import classify

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = '24h'

PERIODS: Dict[str, timedelta] = {
    '1h': timedelta(hours=1),
    '6h': timedelta(hours=6),
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
}


def parse_period(period: Optional[str]) -> timedelta:
    """Parse a period string ("1h", "6h", "24h", "7d", "30d") to a window length.

    Unknown or missing periods default to 24 hours.
    """
    return PERIODS.get(period or DEFAULT_PERIOD, PERIODS[DEFAULT_PERIOD])


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile.

    Sorts ascending and returns the value at index ceil(p/100 * N) - 1,
    clamped to [0, N-1].

    Args:
        values: Sample values (any order)
        p: Percentile, 0 to 100

    Returns:
        Percentile value, or 0 for an empty sample
    """
    if not values:
        return 0
    sorted_values = sorted(values)
    n = len(sorted_values)
    index = math.ceil(p * n / 100) - 1
    return sorted_values[min(max(index, 0), n - 1)]


def calculate_metric_stats(values: Sequence[float], metric: str) -> MetricStats:
    """Summarize one metric's samples.

    Args:
        values: Sample values for the metric
        metric: Metric name (lcp, inp, cls, fcp, ttfb, fid)

    Returns:
        MetricStats rated from p75; an empty sample yields zeros and no-data
    """
    if not values:
        return MetricStats()

    p75 = percentile(values, 75)
    return MetricStats(
        p50=percentile(values, 50),
        p75=p75,
        p90=percentile(values, 90),
        p99=percentile(values, 99),
        avg=sum(values) / len(values),
        count=len(values),
        rating=classify(metric, p75),
    )


class _Accumulator:
    """Per-call value buckets: overall, per device class, per route."""

    def __init__(self):
        self.overall: Dict[str, List[float]] = {name: [] for name in METRIC_NAMES}
        self.by_device: Dict[DeviceType, Dict[str, List[float]]] = {
            device: {name: [] for name in DEVICE_METRICS} for device in DeviceType
        }
        self.by_route: Dict[str, Dict[str, List[float]]] = defaultdict(
            lambda: {name: [] for name in ROUTE_METRICS}
        )

    def add(self, event: SpeedInsightsEvent) -> None:
        device_buckets = self.by_device[event.device_type]
        route_buckets = self.by_route[event.route] if event.route else None

        for name, value in event.metrics.populated().items():
            self.overall[name].append(value)
            if name in device_buckets:
                device_buckets[name].append(value)
            if route_buckets is not None and name in route_buckets:
                route_buckets[name].append(value)

    def device_metrics(self, device: DeviceType) -> DeviceMetrics:
        buckets = self.by_device[device]
        return DeviceMetrics(
            sample_size=len(buckets['lcp']),
            **{name: percentile(values, 75) for name, values in buckets.items()},
        )

    def route_metrics(self) -> Dict[str, RouteMetrics]:
        return {
            route: RouteMetrics(
                route=route,
                sample_size=len(buckets['lcp']),
                **{name: percentile(values, 75) for name, values in buckets.items()},
            )
            for route, buckets in self.by_route.items()
        }


def aggregate_events(
    project_id: str,
    events: Sequence[SpeedInsightsEvent],
    from_ms: int,
    to_ms: int,
) -> Optional[AggregatedMetrics]:
    """Aggregate an already-fetched set of events.

    Returns:
        AggregatedMetrics, or None when there are no events
    """
    if not events:
        return None

    acc = _Accumulator()
    for event in events:
        acc.add(event)

    return AggregatedMetrics(
        project_id=project_id,
        period=Period(from_=from_ms, to=to_ms),
        sample_size=len(events),
        metrics=MetricsBreakdown(
            **{name: calculate_metric_stats(acc.overall[name], name) for name in METRIC_NAMES}
        ),
        by_device=DeviceBreakdown(
            **{device.value: acc.device_metrics(device) for device in DeviceType}
        ),
        by_route=acc.route_metrics(),
    )


class AggregationService:
    """Computes AggregatedMetrics for a project over a time window.

    The store is injected; the service holds no other state.
    """

    def __init__(self, store: EventStore):
        """Initialize aggregation service.

        Args:
            store: Event store to read from
        """
        self.store = store

    def get_aggregated_metrics(
        self,
        project_id: Optional[str],
        from_ms: Optional[int] = None,
        to_ms: Optional[int] = None,
        now_ms: Optional[int] = None,
    ) -> Optional[AggregatedMetrics]:
        """Aggregate a project's events in [from_ms, to_ms].

        Args:
            project_id: Project identifier (required)
            from_ms: Window start, epoch ms (default: to_ms - 24h)
            to_ms: Window end, epoch ms (default: now)
            now_ms: Current time override

        Returns:
            AggregatedMetrics, or None when no events match or the store
            cannot be read

        Raises:
            MissingProjectIdError: If project_id is empty
        """
        if not project_id or not project_id.strip():
            raise MissingProjectIdError('Project ID is required')

        if now_ms is None:
            now_ms = int(time.time() * 1000)
        if to_ms is None:
            to_ms = now_ms
        if from_ms is None:
            from_ms = now_ms - int(PERIODS[DEFAULT_PERIOD].total_seconds() * 1000)

        start = time.time()
        try:
            events = self.store.query_by_project_and_window(project_id, from_ms, to_ms)
        except StoreUnavailableError as e:
            logger.warning(f'Failed to query events for project {project_id}: {e}')
            record_aggregation('error', time.time() - start)
            return None

        aggregated = aggregate_events(project_id, events, from_ms, to_ms)
        record_aggregation('ok' if aggregated else 'no_data', time.time() - start)

        if aggregated is None:
            logger.info(f'No events for project {project_id} in window {from_ms}..{to_ms}')
        else:
            logger.info(
                f'Aggregated {aggregated.sample_size} event(s) for project {project_id} '
                f'across {len(aggregated.by_route)} route(s)'
            )
        return aggregated

    def get_aggregated_metrics_for_period(
        self,
        project_id: Optional[str],
        period: Optional[str] = DEFAULT_PERIOD,
        now_ms: Optional[int] = None,
    ) -> Optional[AggregatedMetrics]:
        """Aggregate the trailing window named by period ("1h" ... "30d")."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        window_ms = int(parse_period(period).total_seconds() * 1000)
        return self.get_aggregated_metrics(project_id, now_ms - window_ms, now_ms, now_ms=now_ms)
