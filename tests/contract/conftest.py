"""Shared fixtures for API contract tests.

Common fixtures (store, make_event, client, unconfigured_client) are defined
in tests/conftest.py.
"""

import json
import time

import pytest


@pytest.fixture
def drain_records():
  """Drain records stamped a few seconds ago, so every trailing window includes them."""
  now = time.time()

  def stamp(seconds_ago):
    return time.strftime('%Y-%m-%dT%H:%M:%S.000Z', time.gmtime(now - seconds_ago))

  return [
    {'timestamp': stamp(5), 'projectId': 'prj_api', 'deviceId': 1, 'metricType': 'LCP', 'value': 1000,
     'deviceType': 'desktop', 'route': '/', 'path': '/'},
    {'timestamp': stamp(4), 'projectId': 'prj_api', 'deviceId': 2, 'metricType': 'LCP', 'value': 3000,
     'deviceType': 'mobile', 'route': '/blog/[slug]', 'path': '/blog/a'},
    {'timestamp': stamp(3), 'projectId': 'prj_api', 'deviceId': 2, 'metricType': 'CLS', 'value': 0.05,
     'deviceType': 'mobile', 'route': '/blog/[slug]', 'path': '/blog/a'},
    {'timestamp': stamp(2), 'projectId': 'prj_api', 'deviceId': 3, 'metricType': 'INP', 'value': 350,
     'deviceType': 'tablet', 'path': '/search'},
  ]


@pytest.fixture
def ndjson_body(drain_records):
  return '\n'.join(json.dumps(r) for r in drain_records) + '\n'
