"""Shared infrastructure: configuration, database, logging, metrics and errors."""
