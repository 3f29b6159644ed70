"""Contract tests for the /api/v1/speed-insights reporting endpoints."""

import pytest

NDJSON = {'Content-Type': 'application/x-ndjson'}
METRICS_URL = '/api/v1/speed-insights/metrics'


@pytest.fixture
def seeded_client(client, ndjson_body):
  response = client.post('/api/drain/speed-insights', content=ndjson_body, headers=NDJSON)
  assert response.json()['success'] is True
  return client


@pytest.mark.contract
class TestAggregatedMetricsEndpoint:
  def test_returns_aggregate_in_camel_case(self, seeded_client):
    response = seeded_client.get(METRICS_URL, params={'project_id': 'prj_api'})

    assert response.status_code == 200
    data = response.json()
    assert data['projectId'] == 'prj_api'
    assert data['sampleSize'] == 4
    assert data['period']['to'] - data['period']['from'] == 24 * 60 * 60 * 1000
    assert data['metrics']['lcp']['p75'] == 3000
    assert data['metrics']['lcp']['rating'] == 'needs-improvement'
    assert data['metrics']['fid'] == {
      'p50': 0, 'p75': 0, 'p90': 0, 'p99': 0, 'avg': 0, 'count': 0, 'rating': 'no-data'
    }
    assert data['byDevice']['mobile']['sampleSize'] == 1
    assert data['byDevice']['tablet']['inp'] == 350
    assert set(data['byRoute']) == {'/', '/blog/[slug]'}
    assert data['byRoute']['/blog/[slug]']['cls'] == 0.05

  def test_project_id_from_env(self, seeded_client, monkeypatch):
    monkeypatch.setenv('VERCEL_PROJECT_ID', 'prj_api')

    response = seeded_client.get(METRICS_URL)

    assert response.status_code == 200
    assert response.json()['projectId'] == 'prj_api'

  def test_missing_project_id_is_400(self, client):
    assert client.get(METRICS_URL).status_code == 400

  def test_unknown_project_is_404(self, seeded_client):
    response = seeded_client.get(METRICS_URL, params={'project_id': 'prj_nobody'})

    assert response.status_code == 404
    assert 'prj_nobody' in response.json()['detail']

  def test_invalid_period_is_422(self, seeded_client):
    response = seeded_client.get(METRICS_URL, params={'project_id': 'prj_api', 'period': '2w'})
    assert response.status_code == 422

  @pytest.mark.parametrize('period', ['1h', '6h', '24h', '7d', '30d'])
  def test_supported_periods(self, seeded_client, period):
    response = seeded_client.get(METRICS_URL, params={'project_id': 'prj_api', 'period': period})
    assert response.status_code == 200

  def test_without_store_is_503(self, unconfigured_client):
    response = unconfigured_client.get(METRICS_URL, params={'project_id': 'prj_api'})
    assert response.status_code == 503


@pytest.mark.contract
class TestSummaryEndpoint:
  def test_summary(self, seeded_client):
    response = seeded_client.get('/api/v1/speed-insights/summary', params={'project_id': 'prj_api'})

    assert response.status_code == 200
    data = response.json()
    # LCP needs improvement, INP needs improvement, CLS good
    assert data['summary']['overallScore'] == 33
    assert data['summary']['overallRating'] == 'needs-improvement'
    assert data['summary']['sampleSize'] == 4
    assert data['coreWebVitals']['lcp']['description'] == 'Largest Contentful Paint: 3000ms (2 samples)'
    assert [r['route'] for r in data['slowestRoutes']] == ['/blog/[slug]', '/']

  def test_summary_no_data(self, client):
    response = client.get('/api/v1/speed-insights/summary', params={'project_id': 'prj_api'})
    assert response.status_code == 404


@pytest.mark.contract
class TestRecentEventsEndpoint:
  def test_newest_first(self, seeded_client):
    response = seeded_client.get('/api/v1/speed-insights/events', params={'project_id': 'prj_api', 'limit': 2})

    assert response.status_code == 200
    data = response.json()
    assert data['count'] == 2
    assert data['events'][0]['path'] == '/search'
    assert data['events'][0]['metrics']['inp'] == '350ms'
    assert data['events'][1]['metrics']['cls'] == '0.050'

  def test_limit_is_capped_at_50(self, client, store, make_event):
    store.insert([make_event('lcp', 1000 + i, timestamp=1704067200000 + i) for i in range(60)])

    response = client.get('/api/v1/speed-insights/events', params={'project_id': 'prj_test', 'limit': 500})

    assert response.json()['count'] == 50

  def test_no_events_is_404(self, client):
    response = client.get('/api/v1/speed-insights/events', params={'project_id': 'prj_api'})
    assert response.status_code == 404

  def test_missing_project_id_is_400(self, client):
    assert client.get('/api/v1/speed-insights/events').status_code == 400


@pytest.mark.contract
class TestStatusEndpoint:
  def test_active(self, seeded_client):
    data = seeded_client.get('/api/v1/speed-insights/status').json()

    assert data['status'] == 'active'
    assert data['projects'] == [{'projectId': 'prj_api', 'eventCount': 4}]
    assert data['totalEvents'] == 4

  def test_no_data(self, client):
    assert client.get('/api/v1/speed-insights/status').json()['status'] == 'no-data'

  def test_without_store(self, unconfigured_client):
    data = unconfigured_client.get('/api/v1/speed-insights/status').json()

    assert data['status'] == 'database-error'
    assert data['database'] == 'disconnected'
