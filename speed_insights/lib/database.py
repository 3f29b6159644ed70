"""Event Store Database Connection Module

Provides the SQLAlchemy declarative base and engine/session construction for
the event store. There is no module-level engine: the process entry point
(the FastAPI lifespan or a job's main()) creates the engine, hands a session
factory to the store, and disposes of the engine on shutdown.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from speed_insights.lib.config import get_database_url, get_pool_settings

Base = declarative_base()


def create_store_engine(
    database_url: str | None = None,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_pre_ping: bool = True,
) -> Engine:
    """Create SQLAlchemy engine for the event store.

    Server databases (PostgreSQL via psycopg) get a QueuePool; SQLite URLs
    get a StaticPool so an in-memory database survives across sessions.

    Args:
        database_url: SQLAlchemy URL (defaults to DATABASE_URL)
        pool_size: Number of connections to maintain in pool
        max_overflow: Maximum overflow connections beyond pool_size
        pool_pre_ping: Test connections before use to detect stale connections

    Returns:
        Configured SQLAlchemy engine

    Raises:
        ValueError: If no database URL is configured

    Example:
        engine = create_store_engine('postgresql+psycopg://user:pw@host:5432/vitals')
    """
    if database_url is None:
        database_url = get_database_url()
    if not database_url:
        raise ValueError('Event store is not configured. Set the DATABASE_URL environment variable.')

    if database_url.startswith('sqlite'):
        return create_engine(
            database_url,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
            echo=False,
        )

    pool = get_pool_settings()
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size if pool_size is not None else pool['pool_size'],
        max_overflow=max_overflow if max_overflow is not None else pool['max_overflow'],
        pool_pre_ping=pool_pre_ping,  # Verify connections before use
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=False,
    )


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get session factory for ORM operations.

    Usage:
        SessionFactory = get_session_factory(engine)
        with SessionFactory() as session:
            rows = session.query(SpeedInsightsEventRecord).limit(10).all()
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Commits on success, rolls back and re-raises on error, always closes.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping(engine: Engine) -> None:
    """Run a trivial query; raises the driver's error if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text('SELECT 1'))
