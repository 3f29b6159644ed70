"""Structured Logger with JSON Formatting.

Emits one JSON object per log line so drain deliveries and report runs can
be traced by correlation ID in the platform's log viewer.
"""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from speed_insights.lib.distributed_tracing import get_correlation_id

# Context fields copied from `extra` onto the JSON line when present
CONTEXT_FIELDS = (
    'project_id',
    'events_count',
    'content_kind',
    'metric_types',
    'duration_ms',
    'endpoint',
    'method',
    'status_code',
)

# Never written to logs
SENSITIVE_KEYS = ('token', 'password', 'secret', 'database_url', 'authorization')


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'request_id': get_correlation_id(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Structured logger with JSON formatting.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Stored drain batch", project_id="prj_123", events_count=12)
        logger.error("Store write failed", exc_info=True)
    """

    def __init__(self, name: str):
        """Initialize structured logger.

        Args:
            name: Logger name (typically module name)
        """
        self.logger = logging.getLogger(name)

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))

        # Replace handlers so re-instantiating does not duplicate lines
        self.logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)

        # Propagate so pytest's caplog sees records; root has no handler in production
        self.logger.propagate = True

    def info(self, message: str, **extra: Any) -> None:
        """Log INFO level message.

        Args:
            message: Log message
            **extra: Additional context (project_id, events_count, etc.)
        """
        self.logger.info(message, extra=extra)

    def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log WARNING level message."""
        self.logger.warning(message, exc_info=exc_info, extra=extra)

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log ERROR level message."""
        self.logger.error(message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **extra: Any) -> None:
        """Log DEBUG level message."""
        self.logger.debug(message, extra=extra)


def _scrub(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in entry.items() if k.lower() not in SENSITIVE_KEYS}


def log_request(endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
    """Log an API request with its duration.

    Args:
        endpoint: API endpoint path
        method: HTTP method
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
    """
    log_data = {
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'level': 'INFO',
        'message': f'{method} {endpoint}',
        'request_id': get_correlation_id(),
        'endpoint': endpoint,
        'method': method,
        'status_code': status_code,
        'duration_ms': round(duration_ms, 2),
    }
    print(json.dumps(log_data))


def log_event(event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
    """Event-based logging without creating a logger instance.

    Sensitive keys (tokens, passwords, connection URLs) are dropped.

    Args:
        event: Event name (e.g., "drain.batch_stored", "store.health_check")
        level: Log level (INFO, WARNING, ERROR, DEBUG)
        context: Additional context dictionary

    Example:
        log_event("drain.batch_rejected", level="WARNING", context={"reason": "bad json"})
    """
    log_entry = {
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'level': level.upper(),
        'event': event,
        'correlation_id': get_correlation_id(),
        **(context or {}),
    }
    print(json.dumps(_scrub(log_entry), default=str))
