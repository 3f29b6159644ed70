"""Web Vitals rating against Google's published thresholds.

A value at or below the "good" bound is good, at or below the
"needs improvement" bound is needs-improvement, anything above is poor.
"""

from typing import Iterable, NamedTuple

from speed_insights.models.web_vitals import CORE_WEB_VITALS, AggregatedMetrics, Rating


class Threshold(NamedTuple):
    good: float
    needs_improvement: float


THRESHOLDS: dict[str, Threshold] = {
    'LCP': Threshold(good=2500, needs_improvement=4000),
    'INP': Threshold(good=200, needs_improvement=500),
    'CLS': Threshold(good=0.1, needs_improvement=0.25),
    'FCP': Threshold(good=1800, needs_improvement=3000),
    'TTFB': Threshold(good=800, needs_improvement=1800),
    'FID': Threshold(good=100, needs_improvement=300),
}


def classify(metric: str, value: float) -> Rating:
    """Rate a metric value.

    Args:
        metric: One of LCP, INP, CLS, FCP, TTFB, FID (case-insensitive)
        value: Metric value (ms, or unitless score for CLS)

    Returns:
        Rating.GOOD, Rating.NEEDS_IMPROVEMENT or Rating.POOR

    Raises:
        KeyError: If metric is not one of the six known names
    """
    threshold = THRESHOLDS[metric.upper()]
    if value <= threshold.good:
        return Rating.GOOD
    if value <= threshold.needs_improvement:
        return Rating.NEEDS_IMPROVEMENT
    return Rating.POOR


def _core_vital_ratings(aggregated: AggregatedMetrics) -> list[Rating]:
    ratings = [getattr(aggregated.metrics, name).rating for name in CORE_WEB_VITALS]
    return [r for r in ratings if r != Rating.NO_DATA]


def combine_ratings(ratings: Iterable[Rating]) -> Rating:
    """Fold Core Web Vital ratings into one overall rating.

    All good -> good; any poor -> poor; otherwise needs-improvement.
    No rated input -> no-data.
    """
    rated = [r for r in ratings if r != Rating.NO_DATA]
    if not rated:
        return Rating.NO_DATA
    if all(r == Rating.GOOD for r in rated):
        return Rating.GOOD
    if any(r == Rating.POOR for r in rated):
        return Rating.POOR
    return Rating.NEEDS_IMPROVEMENT


def overall_rating(aggregated: AggregatedMetrics) -> Rating:
    """Overall health rating from LCP, INP and CLS (non-empty buckets only)."""
    return combine_ratings(_core_vital_ratings(aggregated))


def overall_score(aggregated: AggregatedMetrics) -> int:
    """Percentage of non-empty Core Web Vital buckets rated good, rounded.

    Returns 0 when no Core Web Vital has data.
    """
    rated = _core_vital_ratings(aggregated)
    if not rated:
        return 0
    good = sum(1 for r in rated if r == Rating.GOOD)
    # half-up, not banker's rounding
    return int(good * 100 / len(rated) + 0.5)
