"""Presentation views over aggregated metrics and stored events.

These are the structures handed to reporting and notification consumers:
the performance summary, the recent-events debug view and the drain status.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from speed_insights.lib.errors import StoreUnavailableError
from speed_insights.models.web_vitals import AggregatedMetrics, RouteMetrics, SpeedInsightsEvent
from speed_insights.services.aggregation_service import AggregationService
from speed_insights.services.event_store import EventStore
from speed_insights.services.rating import overall_rating, overall_score

logger = logging.getLogger(__name__)

SLOWEST_ROUTES_LIMIT = 5
RECENT_EVENTS_PER_PROJECT = 5
PROJECT_LIST_LIMIT = 100

CORE_VITAL_LABELS = {
    'lcp': 'Largest Contentful Paint',
    'inp': 'Interaction to Next Paint',
    'cls': 'Cumulative Layout Shift',
}


def iso_timestamp(epoch_ms: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC string with millisecond precision."""
    dt = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f'{dt.microsecond // 1000:03d}Z'


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _describe(metric: str, p75: float, count: int) -> str:
    label = CORE_VITAL_LABELS[metric]
    if metric == 'cls':
        return f'{label}: {p75:.3f} ({count} samples)'
    return f'{label}: {_format_number(p75)}ms ({count} samples)'


def slowest_routes(aggregated: AggregatedMetrics, limit: int = SLOWEST_ROUTES_LIMIT) -> List[RouteMetrics]:
    """Routes with samples, ordered by LCP p75 descending, at most `limit`."""
    routes = [r for r in aggregated.by_route.values() if r.sample_size > 0]
    routes.sort(key=lambda r: r.lcp, reverse=True)
    return routes[:limit]


def build_summary(aggregated: AggregatedMetrics) -> Dict[str, Any]:
    """Build the reporting view of an aggregate.

    Returns:
        Dictionary with summary, coreWebVitals, additionalMetrics and
        slowestRoutes sections
    """
    m = aggregated.metrics
    period = aggregated.period

    core = {}
    for name in CORE_VITAL_LABELS:
        stats = getattr(m, name)
        core[name] = {
            'p75': stats.p75,
            'rating': stats.rating.value,
            'description': _describe(name, stats.p75, stats.count),
        }

    return {
        'summary': {
            'projectId': aggregated.project_id,
            'period': f'{iso_timestamp(period.from_)} to {iso_timestamp(period.to)}',
            'sampleSize': aggregated.sample_size,
            'overallScore': overall_score(aggregated),
            'overallRating': overall_rating(aggregated).value,
        },
        'coreWebVitals': core,
        'additionalMetrics': {
            name: {'p75': getattr(m, name).p75, 'rating': getattr(m, name).rating.value}
            for name in ('fcp', 'ttfb', 'fid')
        },
        'slowestRoutes': [
            {
                'route': r.route,
                'sampleSize': r.sample_size,
                'lcp': r.lcp,
                'inp': r.inp,
                'cls': r.cls,
            }
            for r in slowest_routes(aggregated)
        ],
    }


def format_recent_event(event: SpeedInsightsEvent, missing: Optional[str] = 'n/a') -> Dict[str, Any]:
    """Debug view of one stored event; absent metrics render as `missing`."""
    metrics = event.metrics

    def _ms(value: Optional[float]) -> Optional[str]:
        return f'{_format_number(value)}ms' if value is not None else missing

    return {
        'timestamp': iso_timestamp(event.timestamp),
        'url': event.url,
        'path': event.path,
        'device': event.device_type.value,
        'country': event.country,
        'metrics': {
            'lcp': _ms(metrics.lcp),
            'inp': _ms(metrics.inp),
            'cls': f'{metrics.cls:.3f}' if metrics.cls is not None else missing,
            'fcp': _ms(metrics.fcp),
            'ttfb': _ms(metrics.ttfb),
        },
    }


class DrainStatusService:
    """Reports whether drain data is arriving and what has been stored."""

    def __init__(self, store: Optional[EventStore]):
        self.store = store

    def _database_error(self, message: str) -> Dict[str, Any]:
        return {
            'status': 'database-error',
            'database': 'disconnected',
            'message': message,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

    def get_status(self) -> Dict[str, Any]:
        """Drain status: database-error, no-data, or active with per-project counts."""
        if self.store is None:
            return self._database_error('Event store not configured. Set the DATABASE_URL environment variable.')

        health = self.store.health_check()
        if not health.connected:
            return self._database_error(health.message)

        try:
            project_ids = self.store.list_distinct_project_ids(PROJECT_LIST_LIMIT)
            projects = [
                {'projectId': pid, 'eventCount': self.store.count_by_project(pid)}
                for pid in project_ids
            ]
        except StoreUnavailableError as e:
            logger.warning(f'Failed to read drain status: {e}')
            return self._database_error(str(e))

        if not projects:
            return {
                'status': 'no-data',
                'database': 'connected',
                'message': 'Database connected but no drain data has been received yet',
                'projects': [],
                'totalEvents': 0,
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }

        return {
            'status': 'active',
            'database': 'connected',
            'message': 'Drain data is being received and stored',
            'projects': projects,
            'totalEvents': sum(p['eventCount'] for p in projects),
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

    def get_debug_report(self, now_ms: Optional[int] = None) -> Dict[str, Any]:
        """Status plus, per project, the latest events and the 24h Core Web Vitals."""
        status = self.get_status()
        if status['status'] != 'active':
            return status

        aggregation = AggregationService(self.store)
        projects = []
        for project in status['projects']:
            project_id = project['projectId']
            try:
                latest = self.store.latest_events(project_id, RECENT_EVENTS_PER_PROJECT)
            except StoreUnavailableError as e:
                logger.warning(f'Failed to fetch latest events for {project_id}: {e}')
                latest = []
            aggregated = aggregation.get_aggregated_metrics(project_id, now_ms=now_ms)

            projects.append({
                **project,
                'latestEvents': [format_recent_event(e, missing=None) for e in latest],
                'aggregatedMetrics': _core_vitals_view(aggregated) if aggregated else None,
            })

        return {**status, 'totalProjects': len(projects), 'projects': projects}


def _core_vitals_view(aggregated: AggregatedMetrics) -> Dict[str, Any]:
    m = aggregated.metrics
    return {
        'sampleSize': aggregated.sample_size,
        'period': {
            'from': iso_timestamp(aggregated.period.from_),
            'to': iso_timestamp(aggregated.period.to),
        },
        'coreWebVitals': {
            name: {'p75': getattr(m, name).p75, 'rating': getattr(m, name).rating.value}
            for name in CORE_VITAL_LABELS
        },
    }
