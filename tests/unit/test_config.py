"""Unit tests for environment configuration."""

import os

import pytest

from speed_insights.lib.config import (
  get_pool_settings,
  is_store_configured,
  load_env_file,
  require_timestamp,
  resolve_project_id,
)


def test_store_configured_only_with_database_url(monkeypatch):
  assert is_store_configured() is False

  monkeypatch.setenv('DATABASE_URL', 'sqlite:///:memory:')
  assert is_store_configured() is True


def test_resolve_project_id(monkeypatch):
  assert resolve_project_id(None) is None
  assert resolve_project_id('  prj_a  ') == 'prj_a'

  monkeypatch.setenv('VERCEL_PROJECT_ID', 'prj_env')
  assert resolve_project_id('') == 'prj_env'
  assert resolve_project_id('prj_a') == 'prj_a'


@pytest.mark.parametrize('value,expected', [('true', True), ('1', True), ('YES', True), ('false', False), ('', False)])
def test_require_timestamp(monkeypatch, value, expected):
  monkeypatch.setenv('DRAIN_REQUIRE_TIMESTAMP', value)
  assert require_timestamp() is expected


def test_pool_settings(monkeypatch):
  monkeypatch.delenv('DB_POOL_SIZE', raising=False)
  monkeypatch.delenv('DB_MAX_OVERFLOW', raising=False)
  assert get_pool_settings() == {'pool_size': 5, 'max_overflow': 10}

  monkeypatch.setenv('DB_POOL_SIZE', '20')
  assert get_pool_settings()['pool_size'] == 20


def test_load_env_file(tmp_path, monkeypatch):
  # registered with monkeypatch so teardown removes what the loader sets
  monkeypatch.setenv('SPEED_INSIGHTS_TEST_KEY', 'placeholder')
  monkeypatch.delenv('SPEED_INSIGHTS_EMPTY', raising=False)
  env_file = tmp_path / '.env'
  env_file.write_text('# comment\n\nSPEED_INSIGHTS_TEST_KEY=abc=def\nSPEED_INSIGHTS_EMPTY=\n')

  load_env_file(str(env_file))

  assert os.environ['SPEED_INSIGHTS_TEST_KEY'] == 'abc=def'
  assert 'SPEED_INSIGHTS_EMPTY' not in os.environ


def test_load_missing_env_file_is_ignored(tmp_path):
  load_env_file(str(tmp_path / 'missing.env'))
