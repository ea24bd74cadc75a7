"""Tests for service and platform health scoring."""

from datetime import UTC, datetime, timedelta

import pytest

from devforge.analytics.aggregation import MetricSample, aggregate_metrics
from devforge.analytics.health import (
    CategoryScore,
    DeploymentFact,
    IncidentFact,
    PlatformSnapshot,
    ServiceHealth,
    calculate_category_scores,
    calculate_overall_score,
    calculate_performance_scores,
    calculate_service_health,
    default_scorers,
    deployment_stats,
    determine_health_status,
    fixed_score,
    summarize_service_health,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_healthy_active_service_scores_100():
    assert calculate_service_health(active_incidents=0, status="ACTIVE") == 100.0


def test_each_active_incident_costs_20():
    assert calculate_service_health(active_incidents=2, status="ACTIVE") == 60.0


def test_score_is_clamped_at_zero():
    assert calculate_service_health(active_incidents=10, status="ACTIVE") == 0.0


def test_lifecycle_penalties():
    assert calculate_service_health(active_incidents=0, status="DEPRECATED") == 70.0
    assert calculate_service_health(active_incidents=0, status="MAINTENANCE") == 85.0
    assert calculate_service_health(active_incidents=0, status="EXPERIMENTAL") == 100.0


def test_stale_deployment_penalty():
    stale = NOW - timedelta(days=31)
    fresh = NOW - timedelta(days=29)

    assert calculate_service_health(0, "ACTIVE", last_deployment_at=stale, now=NOW) == 90.0
    assert calculate_service_health(0, "ACTIVE", last_deployment_at=fresh, now=NOW) == 100.0


def test_naive_deployment_time_is_treated_as_utc():
    naive = (NOW - timedelta(days=45)).replace(tzinfo=None)

    assert calculate_service_health(0, "ACTIVE", last_deployment_at=naive, now=NOW) == 90.0


@pytest.mark.parametrize(
    ("score", "status"),
    [(100, "excellent"), (90, "excellent"), (89.9, "good"), (80, "good"), (75, "fair"), (60, "poor"), (59.9, "critical")],
)
def test_determine_health_status(score, status):
    assert determine_health_status(score) == status


def test_summarize_service_health_buckets():
    services = [
        ServiceHealth(name="a", score=100, status="ACTIVE", active_incidents=0),
        ServiceHealth(name="b", score=80, status="ACTIVE", active_incidents=1),
        ServiceHealth(name="c", score=60, status="ACTIVE", active_incidents=2),
        ServiceHealth(name="d", score=40, status="DEPRECATED", active_incidents=1),
    ]

    summary = summarize_service_health(services)

    assert summary == {"average": 70.0, "healthy": 1, "warning": 2, "critical": 1}


def test_summarize_service_health_empty():
    assert summarize_service_health([])["average"] == 0.0


def test_deployment_stats_success_rate():
    deployments = [
        DeploymentFact(status="SUCCESS", started_at=NOW),
        DeploymentFact(status="SUCCESS", started_at=NOW),
        DeploymentFact(status="FAILED", started_at=NOW),
        DeploymentFact(status="ROLLED_BACK", started_at=NOW),
    ]

    stats = deployment_stats(deployments)

    assert stats == {"total": 4, "successful": 2, "failed": 1, "successRate": 50.0}
    assert deployment_stats([])["successRate"] == 0.0


def test_default_category_scores():
    snapshot = PlatformSnapshot(
        services=[
            ServiceHealth(name="a", score=100, status="ACTIVE", active_incidents=0),
            ServiceHealth(name="b", score=80, status="ACTIVE", active_incidents=1),
        ],
        recent_incidents=[
            IncidentFact(title="Security breach in auth", detected_at=NOW),
            IncidentFact(title="Disk full", detected_at=NOW),
            IncidentFact(title=None, detected_at=NOW),
        ],
        recent_deployments=[
            DeploymentFact(status="SUCCESS", started_at=NOW),
            DeploymentFact(status="SUCCESS", started_at=NOW),
        ],
    )

    categories = calculate_category_scores(snapshot, default_scorers())

    assert categories["security"] == CategoryScore(score=90.0, status="good")
    assert categories["performance"] == CategoryScore(score=90.0, status="good")
    assert categories["reliability"] == CategoryScore(score=100.0, status="good")
    assert categories["cost"] == CategoryScore(score=85.0, status="good")
    assert categories["compliance"] == CategoryScore(score=90.0, status="good")
    assert calculate_overall_score(categories) == pytest.approx(91.0)


def test_reliability_uses_stricter_ladder():
    snapshot = PlatformSnapshot(
        recent_deployments=[DeploymentFact(status="SUCCESS", started_at=NOW)] * 9
        + [DeploymentFact(status="FAILED", started_at=NOW)],
    )

    reliability = calculate_category_scores(snapshot)["reliability"]

    assert reliability.score == 90.0
    assert reliability.status == "warning"


def test_no_deployments_scores_reliability_zero():
    assert calculate_category_scores(PlatformSnapshot())["reliability"].status == "critical"


def test_scorers_are_pluggable():
    scorers = {"cost": fixed_score(40), "custom": lambda snapshot: CategoryScore(score=150, status="good")}

    categories = calculate_category_scores(PlatformSnapshot(), scorers)

    assert set(categories) == {"cost", "custom"}
    assert categories["cost"] == CategoryScore(score=40.0, status="critical")
    assert categories["custom"].score == 100.0
    assert calculate_overall_score(categories) == 70.0


def test_fixed_score_is_clamped():
    assert fixed_score(120)(PlatformSnapshot()).score == 100.0


def test_overall_score_of_no_categories_is_zero():
    assert calculate_overall_score({}) == 0.0


def test_performance_scores():
    samples = [
        MetricSample(name="response_time", value=200.0, unit="ms", timestamp=NOW),
        MetricSample(name="error_rate", value=2.5, unit="%", timestamp=NOW),
        MetricSample(name="throughput", value=99.0, unit="req/s", timestamp=NOW),
    ]

    scores = calculate_performance_scores(aggregate_metrics(samples))

    assert scores["responseTime"] == pytest.approx(80.0)
    assert scores["errorRate"] == pytest.approx(75.0)
    assert scores["throughput"] == pytest.approx(100.0)


def test_performance_scores_floor_at_zero():
    samples = [
        MetricSample(name="response_time", value=5000.0, unit="ms", timestamp=NOW),
        MetricSample(name="error_rate", value=50.0, unit="%", timestamp=NOW),
    ]

    scores = calculate_performance_scores(aggregate_metrics(samples))

    assert scores == {"responseTime": 0.0, "errorRate": 0.0}


def test_performance_scores_cap_at_100():
    samples = [
        MetricSample(name="response_time", value=-2.0, unit="ms", timestamp=NOW),
        MetricSample(name="error_rate", value=-2.0, unit="%", timestamp=NOW),
    ]

    scores = calculate_performance_scores(aggregate_metrics(samples))

    assert scores == {"responseTime": 100.0, "errorRate": 100.0}
