"""Rule-based insight text for aggregated metrics and platform scores."""

from __future__ import annotations

from collections.abc import Mapping

from devforge.analytics.aggregation import AggregatedMetric, Trend
from devforge.analytics.health import CategoryScore, calculate_overall_score

ANOMALY_FACTOR = 1.5


def generate_metrics_insights(metrics: Mapping[str, AggregatedMetric]) -> list[str]:
    """Scan aggregated metrics for threshold violations.

    Rules:
    - error_rate trending up
    - response_time trending up (degrading)
    - any metric whose current value exceeds 1.5x its window average
    """
    insights: list[str] = []

    for name, data in metrics.items():
        if data.trend == Trend.INCREASING and name == "error_rate":
            insights.append(f"Error rate is increasing ({data.trend}). Current: {data.current}{data.unit}")

        if data.trend == Trend.INCREASING and name == "response_time":
            insights.append(f"Response time is degrading ({data.trend}). Average: {data.average:.2f}{data.unit}")

        if data.current > data.average * ANOMALY_FACTOR:
            insights.append(
                f"Current {name} ({data.current}{data.unit}) is significantly above average ({data.average:.2f}{data.unit})"
            )

    return insights


def generate_platform_insights(categories: Mapping[str, CategoryScore], stats: Mapping[str, int]) -> list[str]:
    insights = [
        f"Platform health score is {calculate_overall_score(categories):.1f}/100",
        f"Managing {stats.get('services', 0)} services across {stats.get('teams', 0)} teams",
    ]

    performance = categories.get("performance")
    if performance is not None and performance.score < 80:
        insights.append("Some services may need performance attention")

    reliability = categories.get("reliability")
    if reliability is not None and reliability.score < 95:
        insights.append("Deployment success rate could be improved")

    return insights
