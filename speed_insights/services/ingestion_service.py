"""Drain ingestion: parse, normalize and store one delivery.

The drain redelivers on non-2xx responses, so callers acknowledge every
delivery and report failures in the IngestionResult instead of raising.
"""

import time
from collections import Counter
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from speed_insights.lib.errors import MalformedInputError, StoreUnavailableError, StoreWriteError
from speed_insights.lib.metrics import record_drain_batch, record_drain_event
from speed_insights.lib.structured_logger import StructuredLogger
from speed_insights.services.event_store import EventStore
from speed_insights.services.normalizer import (
    ContentKind,
    detect_content_kind,
    normalize_batch,
    parse_payload,
)
from speed_insights.services.reporting import iso_timestamp

logger = StructuredLogger(__name__)


class IngestionResult(BaseModel):
    """Outcome of one drain delivery."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(..., description="Whether the batch was accepted")
    events_received: Optional[int] = Field(
        default=None, ge=0, description="Number of events accepted; unset on failure"
    )
    error: Optional[str] = Field(default=None, description="Failure reason when success is false")
    timestamp: str = Field(
        default_factory=lambda: iso_timestamp(int(time.time() * 1000)),
        description="Processing time (ISO 8601, UTC, milliseconds)",
    )


class DrainIngestionService:
    """Turns drain deliveries into stored events.

    Usage:
        service = DrainIngestionService(store, default_project_id='prj_123')
        result = service.ingest(body, request.headers.get('content-type'))
    """

    def __init__(
        self,
        store: Optional[EventStore],
        default_project_id: Optional[str] = None,
        require_timestamp: bool = False,
    ):
        """Initialize ingestion service.

        Args:
            store: Event store, or None when no database is configured
            default_project_id: Project id for records that carry none
            require_timestamp: Reject records without a usable timestamp
        """
        self.store = store
        self.default_project_id = default_project_id
        self.require_timestamp = require_timestamp

    def ingest(self, body: bytes | str, content_type: Optional[str] = None) -> IngestionResult:
        """Parse, normalize and store one drain delivery.

        The batch is all-or-nothing: a malformed record rejects the whole
        delivery before anything is written.

        Args:
            body: Raw request body
            content_type: Content-Type header (NDJSON when it declares x-ndjson)

        Returns:
            IngestionResult; success is False on malformed input or a failed write
        """
        content_kind = detect_content_kind(content_type)
        start = time.time()

        try:
            raws = parse_payload(body, content_kind)
            events = normalize_batch(
                raws,
                default_project_id=self.default_project_id,
                require_timestamp=self.require_timestamp,
            )
        except MalformedInputError as e:
            record_drain_batch(content_kind.value, 'malformed')
            logger.warning(f'Rejected drain batch: {e}', content_kind=content_kind.value)
            return IngestionResult(success=False, error=str(e))

        metric_types = [event.metrics.metric_type for event in events]
        project_id = events[0].project_id if events else None

        try:
            self._store(events)
        except StoreUnavailableError as e:
            record_drain_batch(content_kind.value, 'skipped')
            logger.warning(
                f'Event store unavailable, dropping {len(events)} event(s): {e}',
                project_id=project_id,
                events_count=len(events),
            )
            return IngestionResult(success=True, events_received=len(events))
        except StoreWriteError as e:
            record_drain_batch(content_kind.value, 'store_error')
            logger.error(
                f'Failed to store drain batch: {e}',
                project_id=project_id,
                events_count=len(events),
            )
            return IngestionResult(success=False, error=str(e))

        for metric_type in metric_types:
            record_drain_event(metric_type)
        record_drain_batch(content_kind.value, 'stored')

        logger.info(
            f'Stored {len(events)} Speed Insights event(s) for project {project_id}',
            project_id=project_id,
            events_count=len(events),
            content_kind=content_kind.value,
            metric_types=dict(Counter(metric_types)),
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return IngestionResult(success=True, events_received=len(events))

    def _store(self, events) -> None:
        if self.store is None:
            raise StoreUnavailableError('Event store not configured')
        if events:
            self.store.insert(events)
