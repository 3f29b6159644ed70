"""Runtime configuration read from environment variables.

Environment variables:
    DATABASE_URL: SQLAlchemy URL of the event store (store disabled when unset)
    VERCEL_PROJECT_ID: Project id used when a record or query omits one
    DRAIN_REQUIRE_TIMESTAMP: Reject drain records without a usable timestamp
    DB_POOL_SIZE: Connection pool size for server databases (default: 5)
    DB_MAX_OVERFLOW: Connections allowed beyond the pool size (default: 10)
    LOG_LEVEL: Log level for structured loggers (default: INFO)
"""

import os
from pathlib import Path

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def load_env_file(filepath: str) -> None:
    """Load environment variables from a file.

    Lines are KEY=VALUE; blank lines and lines starting with '#' are skipped.
    """
    if Path(filepath).exists():
        with open(filepath) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    key, _, value = line.partition('=')
                    if key and value:
                        os.environ[key] = value


def get_database_url() -> str | None:
    """Return the configured database URL, or None if the store is disabled."""
    return os.getenv('DATABASE_URL') or None


def is_store_configured() -> bool:
    """Check if the event store database is configured.

    Returns:
        True if DATABASE_URL is set, False otherwise
    """
    return get_database_url() is not None


def get_default_project_id() -> str | None:
    """Return the fallback project id (VERCEL_PROJECT_ID), if any."""
    return os.getenv('VERCEL_PROJECT_ID') or None


def resolve_project_id(project_id: str | None) -> str | None:
    """Resolve an explicit project id, falling back to VERCEL_PROJECT_ID."""
    if project_id and project_id.strip():
        return project_id.strip()
    return get_default_project_id()


def require_timestamp() -> bool:
    """Whether drain records without a parseable timestamp must be rejected."""
    return os.getenv('DRAIN_REQUIRE_TIMESTAMP', 'false').strip().lower() in _TRUE_VALUES


def get_pool_settings() -> dict[str, int]:
    """Return pool_size / max_overflow for server database engines."""
    return {
        'pool_size': int(os.getenv('DB_POOL_SIZE', '5')),
        'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '10')),
    }
