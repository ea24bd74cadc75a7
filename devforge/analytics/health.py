"""Health scoring.

Per-service scores come from incident load, lifecycle status and deployment
recency. Platform scores are computed per category by injectable scorers and
averaged into an overall score. Every score is clamped to [0, 100].
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from devforge.analytics.aggregation import AggregatedMetric
from devforge.db.models import DeploymentStatus, ServiceStatus
from devforge.utils.timezone import to_utc, utc_now

MAX_SCORE = 100.0
MIN_SCORE = 0.0

ACTIVE_INCIDENT_PENALTY = 20
DEPRECATED_PENALTY = 30
MAINTENANCE_PENALTY = 15
STALE_DEPLOYMENT_PENALTY = 10
STALE_DEPLOYMENT_DAYS = 30
SECURITY_INCIDENT_PENALTY = 10

CATEGORIES = ("security", "performance", "reliability", "cost", "compliance")


def clamp_score(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def calculate_service_health(
    active_incidents: int,
    status: str,
    last_deployment_at: datetime | None = None,
    now: datetime | None = None,
) -> float:
    """Score a single service on a 0-100 scale.

    Args:
        active_incidents: Number of OPEN or INVESTIGATING incidents
        status: Service lifecycle status
        last_deployment_at: Start of the most recent deployment. Only supplied
            when deployment history is known; None skips the recency check.
        now: Reference time (defaults to current UTC time)

    Returns:
        Health score clamped to [0, 100]
    """
    score = MAX_SCORE - active_incidents * ACTIVE_INCIDENT_PENALTY

    if status == ServiceStatus.DEPRECATED:
        score -= DEPRECATED_PENALTY
    elif status == ServiceStatus.MAINTENANCE:
        score -= MAINTENANCE_PENALTY

    if last_deployment_at is not None:
        reference = to_utc(now) if now is not None else utc_now()
        if reference - to_utc(last_deployment_at) > timedelta(days=STALE_DEPLOYMENT_DAYS):
            score -= STALE_DEPLOYMENT_PENALTY

    return clamp_score(score)


def determine_health_status(score: float) -> str:
    """Map an overall score to excellent / good / fair / poor / critical."""
    if score >= 90:
        return "excellent"
    if score >= 80:
        return "good"
    if score >= 70:
        return "fair"
    if score >= 60:
        return "poor"
    return "critical"


def ladder_status(score: float, good_above: float = 80, warning_above: float = 60) -> str:
    if score > good_above:
        return "good"
    if score > warning_above:
        return "warning"
    return "critical"


@dataclass(frozen=True)
class ServiceHealth:
    name: str
    score: float
    status: str
    active_incidents: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "score": self.score,
            "status": self.status,
            "activeIncidents": self.active_incidents,
        }


def summarize_service_health(services: Iterable[ServiceHealth]) -> dict:
    """Average score plus healthy (>80) / warning (60-80) / critical (<60) counts."""
    scores = [s.score for s in services]
    return {
        "average": sum(scores) / len(scores) if scores else 0.0,
        "healthy": sum(1 for score in scores if score > 80),
        "warning": sum(1 for score in scores if 60 <= score <= 80),
        "critical": sum(1 for score in scores if score < 60),
    }


@dataclass(frozen=True)
class IncidentFact:
    title: str | None
    detected_at: datetime


@dataclass(frozen=True)
class DeploymentFact:
    status: str
    started_at: datetime


@dataclass
class PlatformSnapshot:
    """Inputs shared by every category scorer for one analysis run."""

    services: list[ServiceHealth] = field(default_factory=list)
    recent_incidents: list[IncidentFact] = field(default_factory=list)
    recent_deployments: list[DeploymentFact] = field(default_factory=list)


@dataclass(frozen=True)
class CategoryScore:
    score: float
    status: str

    def to_dict(self) -> dict:
        return {"score": self.score, "status": self.status}


CategoryScorer = Callable[[PlatformSnapshot], CategoryScore]


def deployment_stats(deployments: Iterable[DeploymentFact]) -> dict:
    deployments = list(deployments)
    total = len(deployments)
    successful = sum(1 for d in deployments if d.status == DeploymentStatus.SUCCESS)
    failed = sum(1 for d in deployments if d.status == DeploymentStatus.FAILED)
    return {
        "total": total,
        "successful": successful,
        "failed": failed,
        "successRate": (successful / total) * 100 if total > 0 else 0.0,
    }


def score_security(snapshot: PlatformSnapshot) -> CategoryScore:
    security_incidents = sum(1 for i in snapshot.recent_incidents if i.title and "security" in i.title.lower())
    score = clamp_score(MAX_SCORE - security_incidents * SECURITY_INCIDENT_PENALTY)
    return CategoryScore(score=score, status=ladder_status(score))


def score_performance(snapshot: PlatformSnapshot) -> CategoryScore:
    score = clamp_score(summarize_service_health(snapshot.services)["average"])
    return CategoryScore(score=score, status=ladder_status(score))


def score_reliability(snapshot: PlatformSnapshot) -> CategoryScore:
    score = clamp_score(deployment_stats(snapshot.recent_deployments)["successRate"])
    return CategoryScore(score=score, status=ladder_status(score, good_above=95, warning_above=85))


def fixed_score(value: float) -> CategoryScorer:
    """Placeholder scorer for categories with no data source yet."""
    score = clamp_score(value)

    def _scorer(snapshot: PlatformSnapshot) -> CategoryScore:
        return CategoryScore(score=score, status=ladder_status(score))

    return _scorer


def default_scorers(cost_score: float = 85.0, compliance_score: float = 90.0) -> dict[str, CategoryScorer]:
    return {
        "security": score_security,
        "performance": score_performance,
        "reliability": score_reliability,
        "cost": fixed_score(cost_score),
        "compliance": fixed_score(compliance_score),
    }


def calculate_category_scores(
    snapshot: PlatformSnapshot,
    scorers: Mapping[str, CategoryScorer] | None = None,
) -> dict[str, CategoryScore]:
    scorers = scorers if scorers is not None else default_scorers()
    categories: dict[str, CategoryScore] = {}
    for category, scorer in scorers.items():
        result = scorer(snapshot)
        categories[category] = CategoryScore(score=clamp_score(result.score), status=result.status)
    return categories


def calculate_overall_score(categories: Mapping[str, CategoryScore]) -> float:
    """Arithmetic mean of the category scores (0 when there are none)."""
    if not categories:
        return 0.0
    return sum(c.score for c in categories.values()) / len(categories)


def calculate_performance_scores(metrics: Mapping[str, AggregatedMetric]) -> dict[str, float]:
    """Score response time, error rate and throughput averages where present.

    responseTime: 100 at 0ms down to 0 at 1000ms.
    errorRate: 100 at 0% down to 0 at 10%.
    throughput: logarithmic, capped at 100.
    """
    scores: dict[str, float] = {}

    if "response_time" in metrics:
        scores["responseTime"] = clamp_score(100 - metrics["response_time"].average / 10)

    if "error_rate" in metrics:
        scores["errorRate"] = clamp_score(100 - metrics["error_rate"].average * 10)

    if "throughput" in metrics:
        throughput = max(0.0, metrics["throughput"].average)
        scores["throughput"] = clamp_score(math.log10(throughput + 1) * 50)

    return scores
