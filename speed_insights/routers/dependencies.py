"""FastAPI dependencies for the event store handle.

The store is created in the application lifespan and kept on app.state;
endpoints receive it through these dependencies.
"""

from typing import Optional

from fastapi import HTTPException, Request

from speed_insights.services.event_store import EventStore


def get_event_store(request: Request) -> Optional[EventStore]:
  """Return the configured event store, or None when no database is configured."""
  return getattr(request.app.state, 'event_store', None)


def require_event_store(request: Request) -> EventStore:
  """Return the event store.

  Raises:
      HTTPException: 503 if no event store is configured
  """
  store = get_event_store(request)
  if store is None:
    raise HTTPException(
      status_code=503, detail='Speed Insights unavailable: event store database not configured'
    )
  return store
