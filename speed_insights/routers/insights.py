"""Speed Insights reporting endpoints.

Aggregates, summaries and recent events for a project. The project id comes
from the query string or, when omitted, from VERCEL_PROJECT_ID.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from speed_insights.lib.config import resolve_project_id
from speed_insights.lib.errors import MissingProjectIdError, StoreUnavailableError
from speed_insights.models.web_vitals import AggregatedMetrics
from speed_insights.routers.dependencies import get_event_store, require_event_store
from speed_insights.services.aggregation_service import AggregationService
from speed_insights.services.event_store import EventStore
from speed_insights.services.reporting import DrainStatusService, build_summary, format_recent_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/v1/speed-insights', tags=['Speed Insights'])

PERIOD_PATTERN = '^(1h|6h|24h|7d|30d)$'
MAX_RECENT_EVENTS = 50


def _aggregate(store: EventStore, project_id: Optional[str], period: str) -> AggregatedMetrics:
  resolved = resolve_project_id(project_id)
  try:
    aggregated = AggregationService(store).get_aggregated_metrics_for_period(resolved, period)
  except MissingProjectIdError:
    raise HTTPException(
      status_code=400,
      detail='Project ID is required. Provide project_id or set VERCEL_PROJECT_ID.',
    )

  if aggregated is None:
    raise HTTPException(
      status_code=404,
      detail=f'No Speed Insights drain data found for project "{resolved}" in the last {period}',
    )
  return aggregated


@router.get('/metrics', response_model=AggregatedMetrics)
def get_aggregated_metrics(
  project_id: Optional[str] = None,
  period: str = Query('24h', pattern=PERIOD_PATTERN),
  store: EventStore = Depends(require_event_store),
):
  """Get percentile statistics, device and route breakdowns for a project.

  Args:
      project_id: Project identifier (defaults to VERCEL_PROJECT_ID)
      period: Trailing window ("1h", "6h", "24h", "7d", "30d")
      store: Event store

  Returns:
      AggregatedMetrics (404 when the window has no events)
  """
  logger.info(f'Aggregated metrics requested (project_id={project_id}, period={period})')
  return _aggregate(store, project_id, period)


@router.get('/summary')
def get_performance_summary(
  project_id: Optional[str] = None,
  period: str = Query('24h', pattern=PERIOD_PATTERN),
  store: EventStore = Depends(require_event_store),
):
  """Get the reporting view: overall score, Core Web Vitals and slowest routes."""
  logger.info(f'Performance summary requested (project_id={project_id}, period={period})')
  return build_summary(_aggregate(store, project_id, period))


@router.get('/events')
def get_recent_events(
  project_id: Optional[str] = None,
  limit: int = Query(10, ge=1),
  store: EventStore = Depends(require_event_store),
):
  """Get the most recent raw events for a project (at most 50)."""
  resolved = resolve_project_id(project_id)
  if not resolved:
    raise HTTPException(status_code=400, detail='Project ID is required.')

  try:
    events = store.latest_events(resolved, min(limit, MAX_RECENT_EVENTS))
  except StoreUnavailableError as e:
    logger.warning(f'Failed to fetch recent events for {resolved}: {e}')
    events = []

  if not events:
    raise HTTPException(status_code=404, detail=f'No drain events found for project "{resolved}".')

  return {
    'count': len(events),
    'events': [format_recent_event(e) for e in events],
  }


@router.get('/status')
def get_drain_status(store: Optional[EventStore] = Depends(get_event_store)):
  """Get drain collection status: database-error, no-data or active."""
  return DrainStatusService(store).get_status()
