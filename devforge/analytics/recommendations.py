"""Remediation advice for low-scoring platform categories."""

from __future__ import annotations

from collections.abc import Collection, Mapping

from devforge.analytics.health import CategoryScore

RECOMMENDATION_THRESHOLD = 80

RECOMMENDATIONS: dict[str, str] = {
    "security": "Consider implementing additional security monitoring and incident response procedures",
    "performance": "Review service performance metrics and consider optimization or scaling",
    "reliability": "Improve deployment processes and implement better testing procedures",
    "cost": "Analyze resource usage and consider cost optimization opportunities",
    "compliance": "Review compliance requirements and implement missing controls",
}


def generate_recommendations(
    categories: Mapping[str, CategoryScore | float],
    focus_areas: Collection[str] | None = None,
) -> list[str]:
    """Emit one fixed recommendation per category scoring below 80.

    Args:
        categories: Category name to score (or CategoryScore)
        focus_areas: When non-empty, only these categories are considered

    Returns:
        Recommendations in category order
    """
    recommendations: list[str] = []

    for category, data in categories.items():
        if focus_areas and category not in focus_areas:
            continue

        score = data.score if isinstance(data, CategoryScore) else data
        advice = RECOMMENDATIONS.get(category)
        if advice is not None and score < RECOMMENDATION_THRESHOLD:
            recommendations.append(advice)

    return recommendations
