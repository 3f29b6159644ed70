"""Integration tests for SqlAlchemyEventStore against in-memory SQLite."""

import pytest

from speed_insights.lib.database import create_store_engine, get_session_factory
from speed_insights.lib.errors import StoreUnavailableError, StoreWriteError
from speed_insights.models.web_vitals import DeviceType, Environment
from speed_insights.services.event_store import SqlAlchemyEventStore
from speed_insights.services.ingestion_service import DrainIngestionService

NOW_MS = 1704067200000
HOUR_MS = 60 * 60 * 1000


@pytest.mark.integration
class TestEventStoreRoundTrip:
  def test_insert_and_query_preserves_fields(self, store, make_event):
    event = make_event(
      'lcp',
      1834.5,
      timestamp=NOW_MS + 123,
      device_type=DeviceType.MOBILE,
      route='/blog/[slug]',
      event_id='4812-LCP',
      deployment_id='dpl_1',
      environment=Environment.PREVIEW,
      url='https://example.com',
      path='/blog/hello',
      connection_type='4g',
      browser='Chrome',
      os='Android',
      country='DE',
    )

    assert store.insert([event]) == 1
    [stored] = store.query_by_project_and_window('prj_test', NOW_MS, NOW_MS + HOUR_MS)

    assert stored.model_dump() == event.model_dump()

  def test_insert_empty_batch(self, store):
    assert store.insert([]) == 0
    assert store.count_by_project('prj_test') == 0

  def test_duplicate_event_ids_are_all_stored(self, store, make_event):
    first = make_event('lcp', 1000, event_id='42-LCP')
    second = make_event('lcp', 3000, event_id='42-LCP')

    store.insert([first])
    store.insert([second])

    stored = store.query_by_project_and_window('prj_test', NOW_MS, NOW_MS)
    assert store.count_by_project('prj_test') == 2
    assert sorted(e.metrics.lcp for e in stored) == [1000, 3000]
    assert {e.id for e in stored} == {'42-LCP'}


@pytest.mark.integration
class TestWindowQueries:
  def test_window_is_inclusive_at_both_ends(self, store, make_event):
    store.insert([
      make_event('lcp', 1, timestamp=NOW_MS - 1),
      make_event('lcp', 2, timestamp=NOW_MS),
      make_event('lcp', 3, timestamp=NOW_MS + HOUR_MS // 2),
      make_event('lcp', 4, timestamp=NOW_MS + HOUR_MS),
      make_event('lcp', 5, timestamp=NOW_MS + HOUR_MS + 1),
    ])

    stored = store.query_by_project_and_window('prj_test', NOW_MS, NOW_MS + HOUR_MS)

    assert sorted(e.metrics.lcp for e in stored) == [2, 3, 4]

  def test_other_projects_are_excluded(self, store, make_event):
    store.insert([make_event('lcp', 1), make_event('lcp', 2, project_id='prj_other')])

    stored = store.query_by_project_and_window('prj_test', NOW_MS - HOUR_MS, NOW_MS + HOUR_MS)

    assert [e.project_id for e in stored] == ['prj_test']

  def test_latest_events_newest_first(self, store, make_event):
    store.insert([make_event('lcp', i, timestamp=NOW_MS + i * 1000) for i in range(5)])

    latest = store.latest_events('prj_test', limit=3)

    assert [e.metrics.lcp for e in latest] == [4, 3, 2]

  def test_list_distinct_project_ids(self, store, make_event):
    store.insert([
      make_event(project_id='prj_b'),
      make_event(project_id='prj_a'),
      make_event(project_id='prj_b'),
      make_event(project_id='prj_c'),
    ])

    assert store.list_distinct_project_ids() == ['prj_a', 'prj_b', 'prj_c']
    assert store.list_distinct_project_ids(limit=2) == ['prj_a', 'prj_b']
    assert store.count_by_project('prj_b') == 2
    assert store.count_by_project('prj_missing') == 0


@pytest.mark.integration
class TestStoreFailures:
  def test_health_check_connected(self, store):
    health = store.health_check()

    assert health.connected is True
    assert health.message == 'Connected to event store successfully'

  def test_health_check_missing_table(self, bare_engine):
    health = SqlAlchemyEventStore(get_session_factory(bare_engine)).health_check()

    assert health.connected is False
    assert health.message.startswith('Database error: OperationalError')
    assert 'speed_insights_events' in health.message

  def test_write_failure_raises_store_write_error(self, bare_engine, make_event):
    store = SqlAlchemyEventStore(get_session_factory(bare_engine))

    with pytest.raises(StoreWriteError):
      store.insert([make_event()])

  @pytest.mark.parametrize(
    'call',
    [
      lambda s: s.query_by_project_and_window('prj_test', 0, NOW_MS),
      lambda s: s.latest_events('prj_test'),
      lambda s: s.count_by_project('prj_test'),
      lambda s: s.list_distinct_project_ids(),
    ],
  )
  def test_read_failure_raises_store_unavailable(self, bare_engine, call):
    store = SqlAlchemyEventStore(get_session_factory(bare_engine))

    with pytest.raises(StoreUnavailableError):
      call(store)

  def test_unreachable_database_raises_store_unavailable(self, tmp_path, make_event):
    engine = create_store_engine(f'sqlite:///{tmp_path}/missing-dir/events.db')
    store = SqlAlchemyEventStore(get_session_factory(engine))

    try:
      with pytest.raises(StoreUnavailableError):
        store.insert([make_event()])
    finally:
      engine.dispose()

  def test_unreachable_database_is_skipped_by_ingestion(self, tmp_path):
    engine = create_store_engine(f'sqlite:///{tmp_path}/missing-dir/events.db')
    service = DrainIngestionService(SqlAlchemyEventStore(get_session_factory(engine)))

    try:
      result = service.ingest('{"projectId": "prj_test", "metricType": "LCP", "value": 1000}')
    finally:
      engine.dispose()

    assert result.success is True
    assert result.events_received == 1

  def test_timestamp_beyond_datetime_range_raises_store_write_error(self, store, make_event):
    with pytest.raises(StoreWriteError):
      store.insert([make_event(timestamp=10**16)])

    assert store.count_by_project('prj_test') == 0
