"""Drain payload parsing and normalization.

The Speed Insights drain sends ONE metric per record:

    {"metricType": "LCP", "value": 1834.5, "timestamp": "2024-01-01T00:00:00.000Z",
     "deviceId": 4812, "deviceType": "mobile", "route": "/blog/[slug]", ...}

Records arrive as a single JSON object, a JSON array, or newline-delimited
JSON. Each record becomes one canonical SpeedInsightsEvent; records are never
merged here.
"""

import json
import logging
import math
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from speed_insights.lib.errors import MalformedInputError
from speed_insights.models.web_vitals import (
    METRIC_NAMES,
    DeviceType,
    Environment,
    SpeedInsightsEvent,
    WebVitalsMetrics,
)

logger = logging.getLogger(__name__)

NDJSON_CONTENT_TYPES = ('application/x-ndjson', 'application/ndjson')
UNKNOWN_PROJECT_ID = 'unknown'


class ContentKind(str, Enum):
    """Declared encoding of a drain delivery."""
    JSON = 'json'
    NDJSON = 'ndjson'


def detect_content_kind(content_type: Optional[str]) -> ContentKind:
    """Map a Content-Type header to a ContentKind (JSON unless NDJSON is declared)."""
    lowered = (content_type or '').lower()
    if any(kind in lowered for kind in NDJSON_CONTENT_TYPES):
        return ContentKind.NDJSON
    return ContentKind.JSON


def _decode(body: bytes | str) -> str:
    if isinstance(body, str):
        return body
    try:
        return body.decode('utf-8')
    except UnicodeDecodeError as e:
        raise MalformedInputError(f'Payload is not valid UTF-8: {e}') from e


def _require_object(value: Any, position: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedInputError(f'Expected a JSON object at {position}, got {type(value).__name__}')
    return value


def parse_ndjson(text: str) -> list[dict[str, Any]]:
    """Parse newline-delimited JSON, one object per non-blank line.

    Raises:
        MalformedInputError: If any line fails to parse; the whole batch is rejected
    """
    records = []
    for line_number, line in enumerate(text.split('\n'), start=1):
        if not line.strip():
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedInputError(f'Invalid JSON on line {line_number}: {e.msg}') from e
        records.append(_require_object(parsed, f'line {line_number}'))
    return records


def parse_json(text: str) -> list[dict[str, Any]]:
    """Parse a JSON object (one-record batch) or array (multi-record batch).

    Raises:
        MalformedInputError: If the body is not valid JSON or holds non-objects
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f'Invalid JSON payload: {e.msg}') from e

    if isinstance(parsed, list):
        return [_require_object(item, f'index {i}') for i, item in enumerate(parsed)]
    return [_require_object(parsed, 'top level')]


def parse_payload(body: bytes | str, content_kind: ContentKind) -> list[dict[str, Any]]:
    """Split a raw drain body into raw records according to its content kind."""
    text = _decode(body)
    if content_kind == ContentKind.NDJSON:
        return parse_ndjson(text)
    return parse_json(text)


def normalize_device_type(device_type: Any) -> DeviceType:
    """Normalize a reported device type.

    mobile / smartphone -> mobile, tablet -> tablet (case-insensitive);
    anything else, including absence, -> desktop.
    """
    if not isinstance(device_type, str) or not device_type:
        return DeviceType.DESKTOP
    lower = device_type.lower()
    if lower in ('mobile', 'smartphone'):
        return DeviceType.MOBILE
    if lower == 'tablet':
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def normalize_environment(environment: Any) -> Environment:
    """Exact match against preview/development; anything else is production."""
    if environment == Environment.PREVIEW.value:
        return Environment.PREVIEW
    if environment == Environment.DEVELOPMENT.value:
        return Environment.DEVELOPMENT
    return Environment.PRODUCTION


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value: float) -> bool:
    # ints beyond float range overflow in math.isfinite
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def parse_timestamp(value: Any) -> Optional[int]:
    """Convert a record timestamp to epoch milliseconds.

    Accepts an ISO-8601 string (naive strings are taken as UTC) or a numeric
    epoch-milliseconds value. Returns None when absent, unparseable, or
    outside the range a stored datetime can hold.
    """
    if isinstance(value, str):
        candidate = value.strip()
        if candidate.endswith(('Z', 'z')):
            candidate = candidate[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        epoch_ms = int(round(parsed.timestamp() * 1000))
    elif _is_number(value) and _is_finite(value):
        epoch_ms = int(value)
    else:
        return None

    try:
        datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None
    return epoch_ms


def _optional_str(raw: dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or value == '':
        return None
    return str(value)


def _extract_metric(raw: dict[str, Any]) -> tuple[Optional[str], WebVitalsMetrics]:
    metric_type = raw.get('metricType')
    metric_type = metric_type.upper() if isinstance(metric_type, str) and metric_type else None
    value = raw.get('value')

    if metric_type and _is_number(value) and _is_finite(value) and metric_type.lower() in METRIC_NAMES:
        return metric_type, WebVitalsMetrics(**{metric_type.lower(): float(value)})
    return metric_type, WebVitalsMetrics()


def normalize_event(
    raw: dict[str, Any],
    default_project_id: Optional[str] = None,
    now_ms: Optional[int] = None,
    require_timestamp: bool = False,
) -> SpeedInsightsEvent:
    """Normalize one raw drain record into a canonical event.

    Args:
        raw: Parsed drain record
        default_project_id: Used when the record carries no projectId
        now_ms: Ingestion time in epoch ms (defaults to the current time)
        require_timestamp: Reject records without a usable timestamp instead
            of stamping them with the ingestion time

    Returns:
        SpeedInsightsEvent with at most one populated metric

    Raises:
        MalformedInputError: If require_timestamp is set and the timestamp is
            missing or unparseable, or the record cannot form a valid event
    """
    timestamp = parse_timestamp(raw.get('timestamp'))
    if timestamp is None:
        if require_timestamp:
            raise MalformedInputError(f'Record has no usable timestamp: {raw.get("timestamp")!r}')
        timestamp = now_ms if now_ms is not None else int(time.time() * 1000)

    metric_type, metrics = _extract_metric(raw)

    device_id = raw.get('deviceId')
    device_key = str(device_id) if device_id is not None and device_id != '' else str(uuid.uuid4())

    try:
        return SpeedInsightsEvent(
            id=f'{device_key}-{metric_type or "unknown"}',
            timestamp=timestamp,
            project_id=_optional_str(raw, 'projectId') or default_project_id or UNKNOWN_PROJECT_ID,
            deployment_id=_optional_str(raw, 'deploymentId'),
            environment=normalize_environment(raw.get('vercelEnvironment')),
            url=_optional_str(raw, 'origin') or _optional_str(raw, 'url') or '',
            route=_optional_str(raw, 'route'),
            path=_optional_str(raw, 'path') or '/',
            device_type=normalize_device_type(raw.get('deviceType')),
            connection_type=_optional_str(raw, 'connectionSpeed'),
            browser=_optional_str(raw, 'clientName'),
            os=_optional_str(raw, 'osName'),
            country=_optional_str(raw, 'country'),
            metrics=metrics,
        )
    except ValidationError as e:
        raise MalformedInputError(f'Record could not be normalized: {e.errors()[0]["msg"]}') from e


def normalize_batch(
    raws: Iterable[dict[str, Any]],
    default_project_id: Optional[str] = None,
    now_ms: Optional[int] = None,
    require_timestamp: bool = False,
) -> list[SpeedInsightsEvent]:
    """Normalize every raw record; one event per record, in input order."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    events = [
        normalize_event(raw, default_project_id, now_ms=now_ms, require_timestamp=require_timestamp)
        for raw in raws
    ]
    logger.debug(f'Normalized {len(events)} drain record(s)')
    return events
