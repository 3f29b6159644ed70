"""Event store for normalized Speed Insights events.

EventStore is the contract the ingestion and aggregation services depend on;
SqlAlchemyEventStore implements it over the speed_insights_events table.
The store is constructed by the process entry point and passed in, so each
service call works against an explicitly injected handle.
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, NamedTuple

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from speed_insights.lib.database import session_scope
from speed_insights.lib.errors import StoreUnavailableError, StoreWriteError
from speed_insights.lib.metrics import record_store_operation
from speed_insights.models.speed_insights_event import SpeedInsightsEventRecord, epoch_ms_to_datetime
from speed_insights.models.web_vitals import SpeedInsightsEvent

logger = logging.getLogger(__name__)


class StoreHealth(NamedTuple):
    connected: bool
    message: str


class EventStore(ABC):
    """Append-only store of canonical events, queryable by project and time."""

    @abstractmethod
    def insert(self, events: List[SpeedInsightsEvent]) -> int:
        """Persist events; returns the number written.

        Raises:
            StoreUnavailableError: If no connection to the store can be opened
            StoreWriteError: If the write fails (nothing from the batch is kept)
        """

    @abstractmethod
    def query_by_project_and_window(
        self, project_id: str, from_ms: int, to_ms: int
    ) -> List[SpeedInsightsEvent]:
        """Events for a project with from_ms <= timestamp <= to_ms, in no particular order.

        Raises:
            StoreUnavailableError: If the store cannot be read
        """

    @abstractmethod
    def latest_events(self, project_id: str, limit: int = 10) -> List[SpeedInsightsEvent]:
        """Most recent events for a project, newest first."""

    @abstractmethod
    def count_by_project(self, project_id: str) -> int:
        """Number of stored events for a project."""

    @abstractmethod
    def list_distinct_project_ids(self, limit: int = 100) -> List[str]:
        """Project ids that have at least one stored event."""

    @abstractmethod
    def health_check(self) -> StoreHealth:
        """Report whether the store is reachable and its table exists. Never raises."""


@contextmanager
def _timed(operation: str) -> Iterator[None]:
    start = time.time()
    try:
        yield
    finally:
        record_store_operation(operation, time.time() - start)


def _connect(session: Session) -> None:
    """Check out the session's connection before writing.

    Raises:
        StoreUnavailableError: If the connection cannot be established
    """
    try:
        session.connection()
    except SQLAlchemyError as e:
        logger.warning(f'Event store connection failed: {e}')
        raise StoreUnavailableError(f'Event store connection failed: {e}') from e


class SqlAlchemyEventStore(EventStore):
    """EventStore backed by a SQLAlchemy session factory.

    Every method opens and closes its own session; nothing is cached between
    calls.
    """

    def __init__(self, session_factory: sessionmaker):
        """Initialize the store.

        Args:
            session_factory: Session factory bound to the event store engine
        """
        self.session_factory = session_factory

    def insert(self, events: List[SpeedInsightsEvent]) -> int:
        if not events:
            return 0
        try:
            with _timed('insert'), session_scope(self.session_factory) as session:
                _connect(session)
                session.add_all([SpeedInsightsEventRecord.from_event(e) for e in events])
        except (SQLAlchemyError, ValueError, OverflowError) as e:
            logger.error(f'Failed to store {len(events)} event(s): {e}')
            raise StoreWriteError(f'Failed to store events: {e}') from e

        logger.debug(f'Stored {len(events)} event(s)')
        return len(events)

    def query_by_project_and_window(
        self, project_id: str, from_ms: int, to_ms: int
    ) -> List[SpeedInsightsEvent]:
        try:
            with _timed('query_window'), session_scope(self.session_factory) as session:
                rows = (
                    session.query(SpeedInsightsEventRecord)
                    .filter(
                        and_(
                            SpeedInsightsEventRecord.project_id == project_id,
                            SpeedInsightsEventRecord.event_timestamp >= epoch_ms_to_datetime(from_ms),
                            SpeedInsightsEventRecord.event_timestamp <= epoch_ms_to_datetime(to_ms),
                        )
                    )
                    .all()
                )
                return [row.to_event() for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f'Failed to query events: {e}') from e

    def latest_events(self, project_id: str, limit: int = 10) -> List[SpeedInsightsEvent]:
        try:
            with _timed('latest_events'), session_scope(self.session_factory) as session:
                rows = (
                    session.query(SpeedInsightsEventRecord)
                    .filter(SpeedInsightsEventRecord.project_id == project_id)
                    .order_by(
                        SpeedInsightsEventRecord.event_timestamp.desc(),
                        SpeedInsightsEventRecord.id.desc(),
                    )
                    .limit(limit)
                    .all()
                )
                return [row.to_event() for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f'Failed to fetch latest events: {e}') from e

    def count_by_project(self, project_id: str) -> int:
        try:
            with _timed('count'), session_scope(self.session_factory) as session:
                return (
                    session.query(func.count(SpeedInsightsEventRecord.id))
                    .filter(SpeedInsightsEventRecord.project_id == project_id)
                    .scalar()
                ) or 0
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f'Failed to count events: {e}') from e

    def list_distinct_project_ids(self, limit: int = 100) -> List[str]:
        try:
            with _timed('list_projects'), session_scope(self.session_factory) as session:
                rows = (
                    session.query(SpeedInsightsEventRecord.project_id)
                    .distinct()
                    .order_by(SpeedInsightsEventRecord.project_id)
                    .limit(limit)
                    .all()
                )
                return [row.project_id for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f'Failed to list project ids: {e}') from e

    def health_check(self) -> StoreHealth:
        try:
            with session_scope(self.session_factory) as session:
                session.query(SpeedInsightsEventRecord.id).limit(1).all()
        except SQLAlchemyError as e:
            logger.warning(f'Event store health check failed: {e}')
            return StoreHealth(
                connected=False,
                message=f'Database error: {e.__class__.__name__}. '
                        f'Make sure the speed_insights_events table exists.',
            )
        return StoreHealth(connected=True, message='Connected to event store successfully')
