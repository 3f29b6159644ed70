"""FastAPI application for the Speed Insights drain service."""

import time
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from speed_insights.lib.config import is_store_configured, load_env_file
from speed_insights.lib.database import create_store_engine, get_session_factory
from speed_insights.lib.distributed_tracing import set_correlation_id
from speed_insights.lib.metrics import record_request_duration
from speed_insights.lib.structured_logger import StructuredLogger, log_event, log_request
from speed_insights.routers import router
from speed_insights.services.event_store import EventStore, SqlAlchemyEventStore

# Load .env files
load_env_file('.env')
load_env_file('.env.local')

logger = StructuredLogger(__name__)


def create_app(event_store: Optional[EventStore] = None) -> FastAPI:
  """Build the application.

  Args:
      event_store: Store to serve from. When omitted, the lifespan builds a
          SqlAlchemyEventStore from DATABASE_URL, or runs without a store
          (drain deliveries are acknowledged but not persisted).
  """

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    """Own the event store engine for the lifetime of the process."""
    engine = None
    if app.state.event_store is None and is_store_configured():
      engine = create_store_engine()
      app.state.event_store = SqlAlchemyEventStore(get_session_factory(engine))
      log_event('event_store.engine_created', context={'dialect': engine.dialect.name})
    elif app.state.event_store is None:
      logger.warning('DATABASE_URL not set; drain events will not be persisted')

    yield

    if engine is not None:
      engine.dispose()
      app.state.event_store = None
      log_event('event_store.engine_disposed')

  app = FastAPI(
    title='Speed Insights Drain API',
    description='Receives Vercel Speed Insights drain deliveries and reports Core Web Vitals',
    version='0.1.0',
    lifespan=lifespan,
  )
  app.state.event_store = event_store

  @app.middleware('http')
  async def add_correlation_id(request: Request, call_next):
    """Inject correlation ID into the request and log it with its duration.

    - Extracts X-Correlation-ID header or generates new UUID
    - Adds X-Correlation-ID to response headers
    - Records request duration (health and metrics endpoints excluded)
    """
    correlation_id = request.headers.get('X-Correlation-ID', str(uuid4()))
    set_correlation_id(correlation_id)
    request.state.correlation_id = correlation_id

    start_time = time.time()
    response = await call_next(request)
    duration_seconds = time.time() - start_time

    response.headers['X-Correlation-ID'] = correlation_id

    if request.url.path not in ['/health', '/api/health', '/metrics']:
      record_request_duration(
        endpoint=request.url.path,
        method=request.method,
        status=response.status_code,
        duration_seconds=duration_seconds,
      )
      log_request(
        endpoint=request.url.path,
        method=request.method,
        status_code=response.status_code,
        duration_ms=duration_seconds * 1000,
      )

    return response

  @app.get('/health')
  async def health_root():
    """Health check endpoint at root level (for load balancers)."""
    return {'status': 'healthy'}

  @app.get('/api/health')
  async def health_api():
    """Health check endpoint under /api prefix."""
    return {'status': 'healthy'}

  @app.get('/metrics')
  async def metrics_root():
    """Prometheus metrics endpoint (drain, aggregation and request metrics)."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

  app.include_router(router)
  return app


app = create_app()
