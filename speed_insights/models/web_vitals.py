"""Web Vitals Pydantic Models

Canonical drain events and the aggregate structures computed from them.
JSON output uses camelCase names (projectId, sampleSize, byDevice, ...).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Closed metric set, in report order
METRIC_NAMES = ('lcp', 'inp', 'cls', 'fcp', 'ttfb', 'fid')
CORE_WEB_VITALS = ('lcp', 'inp', 'cls')
DEVICE_METRICS = ('lcp', 'inp', 'cls', 'fcp', 'ttfb')
ROUTE_METRICS = CORE_WEB_VITALS


class Environment(str, Enum):
    """Deployment environment the observation came from."""
    PRODUCTION = "production"
    PREVIEW = "preview"
    DEVELOPMENT = "development"


class DeviceType(str, Enum):
    """Device class of the observing client."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class Rating(str, Enum):
    """Threshold classification of a metric value."""
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"
    NO_DATA = "no-data"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class WebVitalsMetrics(_CamelModel):
    """Sparse set of metric values for one event.

    A field is None when the metric was not measured in this event.
    """

    lcp: Optional[float] = Field(default=None, description="Largest Contentful Paint (ms)")
    inp: Optional[float] = Field(default=None, description="Interaction to Next Paint (ms)")
    cls: Optional[float] = Field(default=None, description="Cumulative Layout Shift (score)")
    fcp: Optional[float] = Field(default=None, description="First Contentful Paint (ms)")
    ttfb: Optional[float] = Field(default=None, description="Time to First Byte (ms)")
    fid: Optional[float] = Field(default=None, description="First Input Delay (ms)")

    def populated(self) -> dict[str, float]:
        """Return only the measured metrics, keyed by lowercase name."""
        return {name: getattr(self, name) for name in METRIC_NAMES if getattr(self, name) is not None}

    @property
    def metric_type(self) -> str:
        """Uppercase name of the first measured metric, or 'unknown'."""
        for name in METRIC_NAMES:
            if getattr(self, name) is not None:
                return name.upper()
        return 'unknown'


class SpeedInsightsEvent(_CamelModel):
    """One client performance observation, as stored.

    Attributes:
        id: Device id joined with metric type; not unique across records
        timestamp: Observation time, milliseconds since epoch
        project_id: Tenant/application identifier
        environment: production, preview or development
        url: Page origin or URL
        route: Route pattern, when the framework reports one
        path: Concrete path (defaults to "/")
        device_type: desktop, mobile or tablet
        metrics: Measured metric values
    """

    id: str = Field(..., min_length=1)
    timestamp: int = Field(..., description="Epoch milliseconds")
    project_id: str = Field(..., min_length=1)
    deployment_id: Optional[str] = None
    environment: Environment = Environment.PRODUCTION
    url: str = ""
    route: Optional[str] = None
    path: str = "/"
    device_type: DeviceType = DeviceType.DESKTOP
    connection_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    country: Optional[str] = None
    metrics: WebVitalsMetrics = Field(default_factory=WebVitalsMetrics)


class MetricStats(_CamelModel):
    """Percentile summary of one metric over a set of events."""

    p50: float = 0
    p75: float = 0
    p90: float = 0
    p99: float = 0
    avg: float = 0
    count: int = Field(default=0, ge=0)
    rating: Rating = Rating.NO_DATA


class DeviceMetrics(_CamelModel):
    """p75 per metric for one device class; sample_size counts LCP samples."""

    sample_size: int = 0
    lcp: float = 0
    inp: float = 0
    cls: float = 0
    fcp: float = 0
    ttfb: float = 0


class RouteMetrics(_CamelModel):
    """p75 of the Core Web Vitals for one route; sample_size counts LCP samples."""

    route: str
    sample_size: int = 0
    lcp: float = 0
    inp: float = 0
    cls: float = 0


class Period(_CamelModel):
    """Closed aggregation window in epoch milliseconds."""

    from_: int = Field(..., alias="from")
    to: int


class MetricsBreakdown(_CamelModel):
    lcp: MetricStats
    inp: MetricStats
    cls: MetricStats
    fcp: MetricStats
    ttfb: MetricStats
    fid: MetricStats


class DeviceBreakdown(_CamelModel):
    desktop: DeviceMetrics
    mobile: DeviceMetrics
    tablet: DeviceMetrics


class AggregatedMetrics(_CamelModel):
    """Aggregate over one project and time window.

    Built fresh for every request and never persisted.
    """

    project_id: str
    period: Period
    sample_size: int = Field(..., ge=1)
    metrics: MetricsBreakdown
    by_device: DeviceBreakdown
    by_route: dict[str, RouteMetrics] = Field(default_factory=dict)
