from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Float, Index, Integer, String

from speed_insights.lib.database import Base
from speed_insights.models.web_vitals import (
  METRIC_NAMES,
  DeviceType,
  Environment,
  SpeedInsightsEvent,
  WebVitalsMetrics,
)


def epoch_ms_to_datetime(epoch_ms: int) -> datetime:
  return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)


def datetime_to_epoch_ms(value: datetime) -> int:
  # SQLite hands back naive datetimes; they were written as UTC
  if value.tzinfo is None:
    value = value.replace(tzinfo=timezone.utc)
  return int(round(value.timestamp() * 1000))


class SpeedInsightsEventRecord(Base):
  """Stored Web Vitals observation received from the drain.

  event_id is deliberately not unique: records sharing a device id and
  metric type keep the same event_id and are all stored.
  """

  __tablename__ = 'speed_insights_events'

  id = Column(Integer().with_variant(BigInteger, 'postgresql'), primary_key=True, autoincrement=True)
  event_id = Column(String(255), nullable=False)
  event_timestamp = Column(DateTime(timezone=True), nullable=False)
  project_id = Column(String(255), nullable=False)
  deployment_id = Column(String(255), nullable=True)
  environment = Column(String(20), nullable=False, default=Environment.PRODUCTION.value)
  url = Column(String(2048), nullable=False, default='')
  route = Column(String(1024), nullable=True)
  path = Column(String(2048), nullable=False, default='/')
  device_type = Column(String(20), nullable=False, default=DeviceType.DESKTOP.value)
  connection_type = Column(String(50), nullable=True)
  browser = Column(String(100), nullable=True)
  os = Column(String(100), nullable=True)
  country = Column(String(10), nullable=True)
  lcp = Column(Float, nullable=True)
  inp = Column(Float, nullable=True)
  cls = Column(Float, nullable=True)
  fcp = Column(Float, nullable=True)
  ttfb = Column(Float, nullable=True)
  fid = Column(Float, nullable=True)

  __table_args__ = (
    Index('ix_speed_insights_events_project_timestamp', 'project_id', 'event_timestamp'),
    Index('ix_speed_insights_events_event_id', 'event_id'),
  )

  @classmethod
  def from_event(cls, event: SpeedInsightsEvent) -> 'SpeedInsightsEventRecord':
    """Build a row from a canonical event."""
    return cls(
      event_id=event.id,
      event_timestamp=epoch_ms_to_datetime(event.timestamp),
      project_id=event.project_id,
      deployment_id=event.deployment_id,
      environment=event.environment.value,
      url=event.url,
      route=event.route,
      path=event.path,
      device_type=event.device_type.value,
      connection_type=event.connection_type,
      browser=event.browser,
      os=event.os,
      country=event.country,
      **{name: getattr(event.metrics, name) for name in METRIC_NAMES},
    )

  def to_event(self) -> SpeedInsightsEvent:
    """Convert the row back to a canonical event.

    Unrecognized stored environment/device strings fall back to the defaults.
    """
    try:
      environment = Environment(self.environment)
    except ValueError:
      environment = Environment.PRODUCTION
    try:
      device_type = DeviceType(self.device_type)
    except ValueError:
      device_type = DeviceType.DESKTOP

    return SpeedInsightsEvent(
      id=self.event_id,
      timestamp=datetime_to_epoch_ms(self.event_timestamp),
      project_id=self.project_id,
      deployment_id=self.deployment_id,
      environment=environment,
      url=self.url or '',
      route=self.route,
      path=self.path or '/',
      device_type=device_type,
      connection_type=self.connection_type,
      browser=self.browser,
      os=self.os,
      country=self.country,
      metrics=WebVitalsMetrics(**{name: getattr(self, name) for name in METRIC_NAMES}),
    )
