"""Models package for database entities and Pydantic models."""

from speed_insights.models.speed_insights_event import SpeedInsightsEventRecord
from speed_insights.models.web_vitals import (
  AggregatedMetrics,
  DeviceMetrics,
  DeviceType,
  Environment,
  MetricStats,
  Rating,
  RouteMetrics,
  SpeedInsightsEvent,
  WebVitalsMetrics,
)

__all__ = [
  'SpeedInsightsEventRecord',
  'SpeedInsightsEvent',
  'WebVitalsMetrics',
  'AggregatedMetrics',
  'MetricStats',
  'DeviceMetrics',
  'RouteMetrics',
  'DeviceType',
  'Environment',
  'Rating',
]
