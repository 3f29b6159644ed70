"""Shared test fixtures and utilities for all tests.

Provides an in-memory SQLite event store, an event factory, and FastAPI
clients with and without a configured store. Available to unit, contract
and integration tests.
"""

import sys
from pathlib import Path

# Ensure the project root is first in sys.path so `scripts` resolves locally
project_root = str(Path(__file__).parent.parent.absolute())
if project_root not in sys.path:
  sys.path.insert(0, project_root)
elif sys.path[0] != project_root:
  sys.path.remove(project_root)
  sys.path.insert(0, project_root)

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from speed_insights.app import create_app
from speed_insights.lib.database import Base, create_store_engine, get_session_factory
from speed_insights.lib.distributed_tracing import reset_correlation_id
from speed_insights.models.web_vitals import DeviceType, SpeedInsightsEvent, WebVitalsMetrics
from speed_insights.services.event_store import SqlAlchemyEventStore

# 2024-01-01T00:00:00.000Z
NOW_MS = 1704067200000


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
  """Start every test without drain configuration from the developer's shell."""
  for var in ('DATABASE_URL', 'VERCEL_PROJECT_ID', 'DRAIN_REQUIRE_TIMESTAMP'):
    monkeypatch.delenv(var, raising=False)
  reset_correlation_id()
  yield
  reset_correlation_id()


# ============================================================================
# Event Store Fixtures
# ============================================================================


@pytest.fixture
def engine():
  """In-memory SQLite engine with the event table created."""
  engine = create_store_engine('sqlite:///:memory:')
  Base.metadata.create_all(engine)
  yield engine
  engine.dispose()


@pytest.fixture
def bare_engine():
  """In-memory SQLite engine without any tables."""
  engine = create_store_engine('sqlite:///:memory:')
  yield engine
  engine.dispose()


@pytest.fixture
def store(engine):
  """SqlAlchemyEventStore over the in-memory engine."""
  return SqlAlchemyEventStore(get_session_factory(engine))


@pytest.fixture
def make_event():
  """Factory for canonical events with one metric populated.

  Example:
      event = make_event('lcp', 1834.5, route='/blog/[slug]')
  """

  def _make(
    metric: Optional[str] = 'lcp',
    value: float = 1000.0,
    timestamp: int = NOW_MS,
    project_id: str = 'prj_test',
    device_type: DeviceType = DeviceType.DESKTOP,
    route: Optional[str] = None,
    event_id: Optional[str] = None,
    **fields,
  ) -> SpeedInsightsEvent:
    metrics = WebVitalsMetrics(**{metric: value}) if metric else WebVitalsMetrics()
    return SpeedInsightsEvent(
      id=event_id or f'device-{(metric or "unknown").upper()}',
      timestamp=timestamp,
      project_id=project_id,
      device_type=device_type,
      route=route,
      metrics=metrics,
      **fields,
    )

  return _make


# ============================================================================
# FastAPI Application Fixtures
# ============================================================================


@pytest.fixture
def app(store):
  """Application serving from the in-memory store."""
  return create_app(event_store=store)


@pytest.fixture
def client(app):
  """Test client for the application with a configured store."""
  return TestClient(app)


@pytest.fixture
def unconfigured_client():
  """Test client for an application with no event store (DATABASE_URL unset)."""
  with TestClient(create_app()) as test_client:
    yield test_client
