"""Integration test fixtures.

The event store fixtures (engine, bare_engine, store, make_event) come from
tests/conftest.py and run against in-memory SQLite.
"""
