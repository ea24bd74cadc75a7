"""Metric aggregation.

Groups raw metric samples by name and summarizes each group over the
requested window: current/average/min/max, sample count, unit, the ordered
timeseries and a coarse trend from a two-half mean comparison.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Protocol

from devforge.utils.timezone import to_utc


class Trend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    UNKNOWN = "unknown"


# Percentage change between half-means needed to call a trend
ANALYTICS_TREND_THRESHOLD_PCT = 10.0
CATALOG_TREND_THRESHOLD_PCT = 5.0

TIME_RANGES: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIME_RANGE = "24h"

# Metric name -> (summary key, unit) for the catalog performance summary
CATALOG_PERFORMANCE_METRICS: dict[str, tuple[str, str]] = {
    "response_time": ("responseTime", "ms"),
    "error_rate": ("errorRate", "%"),
    "throughput": ("throughput", "req/s"),
}


class SampleLike(Protocol):
    name: str
    value: float
    unit: str
    timestamp: datetime


@dataclass(frozen=True)
class MetricSample:
    """A single recorded metric value. Read-only to this package."""

    name: str
    value: float
    timestamp: datetime
    unit: str = ""
    service_id: str | None = None


@dataclass(frozen=True)
class AggregatedMetric:
    current: float
    average: float
    min: float
    max: float
    trend: str
    data_points: int
    unit: str
    timeseries: list[tuple[datetime, float]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "average": self.average,
            "min": self.min,
            "max": self.max,
            "trend": self.trend,
            "dataPoints": self.data_points,
            "unit": self.unit,
            "timeseries": [{"timestamp": to_utc(ts).isoformat(), "value": value} for ts, value in self.timeseries],
        }


def normalize_time_range(time_range: str | None) -> str:
    """The window label actually applied; unknown labels mean 24h."""
    if time_range in TIME_RANGES:
        return time_range
    return DEFAULT_TIME_RANGE


def parse_time_range(time_range: str | None) -> timedelta:
    """Map a window label (1h, 6h, 24h, 7d, 30d) to a timedelta."""
    return TIME_RANGES[normalize_time_range(time_range)]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def compute_trend(
    values: Sequence[float],
    *,
    default: str = Trend.STABLE.value,
    threshold_pct: float = ANALYTICS_TREND_THRESHOLD_PCT,
) -> str:
    """Classify the direction of a chronologically ordered series.

    The series is split into two contiguous halves (the first floor(n/2)
    values, the remainder in the second) and the percentage change of the
    second half's mean over the first half's mean is compared to the
    threshold.

    Args:
        values: Values in chronological order
        default: Label returned when fewer than two values are given
        threshold_pct: Change (in percent) that must be exceeded

    Returns:
        "increasing", "decreasing", "stable", or ``default``
    """
    if len(values) < 2:
        return default

    split = len(values) // 2
    first_avg = _mean(values[:split])
    second_avg = _mean(values[split:])

    if first_avg == 0:
        if second_avg > 0:
            return Trend.INCREASING.value
        if second_avg < 0:
            return Trend.DECREASING.value
        return Trend.STABLE.value

    change = ((second_avg - first_avg) / abs(first_avg)) * 100

    if change > threshold_pct:
        return Trend.INCREASING.value
    if change < -threshold_pct:
        return Trend.DECREASING.value
    return Trend.STABLE.value


def _sorted_by_time(samples: Iterable[SampleLike]) -> list[SampleLike]:
    return sorted(samples, key=lambda s: to_utc(s.timestamp))


def group_by_name(samples: Iterable[SampleLike]) -> dict[str, list[SampleLike]]:
    grouped: dict[str, list[SampleLike]] = {}
    for sample in samples:
        grouped.setdefault(sample.name, []).append(sample)
    return grouped


def aggregate_series(samples: Sequence[SampleLike], *, trend_default: str = Trend.STABLE.value) -> AggregatedMetric:
    """Summarize one non-empty group of same-named samples."""
    ordered = _sorted_by_time(samples)
    values = [s.value for s in ordered]
    return AggregatedMetric(
        current=values[-1],
        average=_mean(values),
        min=min(values),
        max=max(values),
        trend=compute_trend(values, default=trend_default),
        data_points=len(values),
        unit=ordered[0].unit or "",
        timeseries=[(s.timestamp, s.value) for s in ordered],
    )


def aggregate_metrics(samples: Iterable[SampleLike], time_range: str = DEFAULT_TIME_RANGE) -> dict[str, AggregatedMetric]:
    """Aggregate one service's samples within a window, keyed by metric name.

    Args:
        samples: Unordered samples for a single service
        time_range: Nominal window label the samples were selected with

    Returns:
        Mapping of metric name to its aggregate; empty input gives an empty mapping
    """
    # time_range only labels the window; the caller has already filtered samples to it
    return {name: aggregate_series(group) for name, group in group_by_name(samples).items()}


def summarize_service_performance(samples: Iterable[SampleLike]) -> dict[str, dict]:
    """Catalog-view performance summary for response time, error rate and throughput.

    Uses the catalog conventions: a metric with fewer than two samples has
    trend "unknown", and the trend threshold is 5%.
    """
    grouped = group_by_name(samples)
    summary: dict[str, dict] = {}
    for metric_name, (key, unit) in CATALOG_PERFORMANCE_METRICS.items():
        ordered = _sorted_by_time(grouped.get(metric_name, []))
        values = [s.value for s in ordered]
        summary[key] = {
            "average": _mean(values) if values else None,
            "trend": compute_trend(values, default=Trend.UNKNOWN.value, threshold_pct=CATALOG_TREND_THRESHOLD_PCT),
            "unit": unit,
        }
    return summary
