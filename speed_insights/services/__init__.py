"""Drain ingestion, storage, aggregation and reporting services."""
