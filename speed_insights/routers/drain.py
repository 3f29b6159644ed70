"""Speed Insights drain endpoints.

The drain POSTs Web Vitals as JSON (object or array) or NDJSON. Every
delivery is answered with 200 so the drain does not redeliver bad data; the
body reports whether the batch was stored.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from speed_insights.lib.config import get_default_project_id, require_timestamp
from speed_insights.routers.dependencies import get_event_store
from speed_insights.services.event_store import EventStore
from speed_insights.services.ingestion_service import DrainIngestionService
from speed_insights.services.reporting import DrainStatusService

router = APIRouter(prefix='/api/drain', tags=['Drain'])


@router.post('/speed-insights')
async def receive_speed_insights(
  request: Request,
  store: Optional[EventStore] = Depends(get_event_store),
):
  """Receive a Speed Insights drain delivery.

  Content-Type application/x-ndjson is parsed line by line; anything else
  as a JSON object or array.

  Returns:
      {"success": true, "eventsReceived": N, "timestamp": ...} or
      {"success": false, "error": ..., "timestamp": ...}, always with status 200
  """
  body = await request.body()
  service = DrainIngestionService(
    store,
    default_project_id=get_default_project_id(),
    require_timestamp=require_timestamp(),
  )
  result = await run_in_threadpool(service.ingest, body, request.headers.get('content-type'))
  return result.model_dump(by_alias=True, exclude_none=True)


@router.get('/speed-insights')
async def drain_endpoint_check():
  """Validation probe used when the drain is configured."""
  return {
    'status': 'ok',
    'endpoint': 'Speed Insights Drain',
    'timestamp': datetime.now(timezone.utc).isoformat(),
  }


@router.get('/debug')
def drain_debug(store: Optional[EventStore] = Depends(get_event_store)):
  """Drain data status with the latest events and 24h Core Web Vitals per project."""
  return DrainStatusService(store).get_debug_report()
