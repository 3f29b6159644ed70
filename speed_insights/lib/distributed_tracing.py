"""Request correlation IDs for log lines.

Each drain delivery or report request gets one ID, stored in a ContextVar so
it follows the request through async calls and threadpool endpoints.
"""

import contextvars
from uuid import uuid4

_NO_REQUEST = 'no-request-id'

correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
  'correlation_id', default=_NO_REQUEST
)


def get_correlation_id() -> str:
  """Return the current request's correlation ID ('no-request-id' outside a request)."""
  return correlation_id.get()


def set_correlation_id(request_id: str) -> None:
  """Bind a correlation ID to the current context.

  Args:
      request_id: X-Correlation-ID header value or a generated UUID
  """
  correlation_id.set(request_id)


def generate_correlation_id() -> str:
  """Generate a new correlation ID, bind it, and return it.

  Used by the daily report job, which has no inbound request header.
  """
  request_id = str(uuid4())
  set_correlation_id(request_id)
  return request_id


def reset_correlation_id() -> None:
  """Reset the correlation ID to its default (used by tests)."""
  correlation_id.set(_NO_REQUEST)
