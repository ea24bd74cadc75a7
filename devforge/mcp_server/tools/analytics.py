"""Metrics, incident and platform health tools for the MCP server."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from devforge.analytics.aggregation import aggregate_metrics, normalize_time_range, parse_time_range
from devforge.analytics.health import (
    CategoryScorer,
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
    summarize_service_health,
)
from devforge.analytics.incidents import analyze_incident_trends, calculate_incident_impact, generate_incident_summary
from devforge.analytics.insights import generate_metrics_insights, generate_platform_insights
from devforge.analytics.recommendations import generate_recommendations
from devforge.config.settings import settings
from devforge.db.models import (
    ACTIVE_INCIDENT_STATUSES,
    Deployment,
    DeploymentStatus,
    Incident,
    IncidentSeverity,
    Metric,
    Service,
    ServiceStatus,
    Team,
    User,
)
from devforge.db.repository import (
    count_active_incidents,
    deployments_since,
    find_service_by_name,
    incidents_since,
    metrics_since,
    similar_service_names,
)
from devforge.db.session import SessionFactory, get_session
from devforge.mcp_server.content import not_found, text_content
from devforge.mcp_server.schemas import (
    AnalyzePlatformHealthInput,
    GetIncidentsInput,
    GetServiceMetricsInput,
    parse_arguments,
)
from devforge.utils.timezone import isoformat_or_none, utc_now

HEALTH_WINDOW = timedelta(days=7)
DASHBOARD_WINDOW = timedelta(hours=24)
ALERT_SEVERITIES = (IncidentSeverity.HIGH.value, IncidentSeverity.CRITICAL.value)


def get_service_metrics_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """Aggregated metrics, performance scores and insights for one service over a window."""
    args = parse_arguments(GetServiceMetricsInput, arguments)
    service_name = args.service_name
    time_range = normalize_time_range(args.time_range)

    try:
        end_time = utc_now()
        start_time = end_time - parse_time_range(time_range)

        with session_factory() as session:
            service = find_service_by_name(session, service_name)
            if service is None:
                return not_found(
                    f'Service "{service_name}" not found',
                    suggestions=similar_service_names(session, service_name),
                )

            samples = metrics_since(session, service.id, start_time, args.metrics or None)
            aggregated = aggregate_metrics(samples, time_range)

            result = {
                "service": {"name": service.name, "id": service.id},
                "timeRange": time_range,
                "period": {"start": start_time.isoformat(), "end": end_time.isoformat()},
                "metrics": {name: metric.to_dict() for name, metric in aggregated.items()},
                "performance": calculate_performance_scores(aggregated),
                "insights": generate_metrics_insights(aggregated),
            }

        logger.info(f"Retrieved metrics for service: {service_name}")
        return text_content(result)

    except SQLAlchemyError:
        logger.exception(f"Database error getting metrics for {service_name}")
        raise


def get_incidents_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """Most recent incidents, newest first, with per-incident impact and a summary."""
    args = parse_arguments(GetIncidentsInput, arguments)
    filters = {
        "status": args.status.value if args.status else None,
        "severity": args.severity.value if args.severity else None,
        "serviceName": args.service_name,
    }

    try:
        with session_factory() as session:
            stmt = select(Incident).options(selectinload(Incident.service).selectinload(Service.owner))
            if args.status:
                stmt = stmt.where(Incident.status == args.status.value)
            if args.severity:
                stmt = stmt.where(Incident.severity == args.severity.value)
            if args.service_name:
                stmt = stmt.join(Service, Incident.service_id == Service.id).where(
                    func.lower(Service.name) == args.service_name.lower()
                )
            incidents = list(session.execute(stmt.order_by(Incident.detected_at.desc()).limit(args.limit)).scalars())

            incident_data = {
                "totalCount": len(incidents),
                "filters": filters,
                "incidents": [
                    {
                        "id": incident.id,
                        "title": incident.title,
                        "description": incident.description,
                        "severity": incident.severity,
                        "status": incident.status,
                        "service": {
                            "name": incident.service.name,
                            "type": incident.service.type,
                            "team": incident.service.owner.display_name,
                        },
                        "timeline": {
                            "detectedAt": isoformat_or_none(incident.detected_at),
                            "resolvedAt": isoformat_or_none(incident.resolved_at),
                            "duration": incident.duration,
                        },
                        "impact": calculate_incident_impact(incident.severity, incident.duration),
                    }
                    for incident in incidents
                ],
                "summary": generate_incident_summary(incidents),
            }

        logger.info(f"Retrieved {len(incidents)} incidents with filters: {filters}")
        return text_content(incident_data)

    except SQLAlchemyError:
        logger.exception("Database error getting incidents")
        raise


def _platform_stats(session) -> dict[str, int]:
    return {
        "services": session.execute(select(func.count(Service.id))).scalar_one(),
        "teams": session.execute(select(func.count(Team.id))).scalar_one(),
        "users": session.execute(select(func.count(User.id))).scalar_one(),
    }


def _service_health_scores(session) -> list[ServiceHealth]:
    services = list(session.execute(select(Service).order_by(Service.name)).scalars())
    active_counts = count_active_incidents(session, [s.id for s in services])
    return [
        ServiceHealth(
            name=service.name,
            score=calculate_service_health(active_incidents=active_counts.get(service.id, 0), status=service.status),
            status=service.status,
            active_incidents=active_counts.get(service.id, 0),
        )
        for service in services
    ]


def analyze_platform_health_tool(
    arguments: dict,
    session_factory: SessionFactory = get_session,
    scorers: Mapping[str, CategoryScorer] | None = None,
) -> dict:
    """Score the platform by category and derive recommendations and insights.

    Args:
        arguments: Tool arguments (includeRecommendations, focusAreas)
        session_factory: Context manager factory yielding a Session
        scorers: Category scorers; defaults to the built-in set with the
            configured placeholder scores for cost and compliance
    """
    args = parse_arguments(AnalyzePlatformHealthInput, arguments)
    if scorers is None:
        scorers = default_scorers(settings.cost_placeholder_score, settings.compliance_placeholder_score)

    try:
        now = utc_now()
        since = now - HEALTH_WINDOW

        with session_factory() as session:
            stats = _platform_stats(session)
            services = _service_health_scores(session)
            recent_incidents = incidents_since(session, since)
            recent_deployments = deployments_since(session, since)

            snapshot = PlatformSnapshot(
                services=services,
                recent_incidents=[IncidentFact(title=i.title, detected_at=i.detected_at) for i in recent_incidents],
                recent_deployments=[DeploymentFact(status=d.status, started_at=d.started_at) for d in recent_deployments],
            )
            incident_trends = analyze_incident_trends(recent_incidents)

        categories = calculate_category_scores(snapshot, scorers)
        overall_score = calculate_overall_score(categories)

        analysis = {
            "overall": {
                "score": overall_score,
                "status": determine_health_status(overall_score),
                "lastUpdated": now.isoformat(),
            },
            "categories": {name: category.to_dict() for name, category in categories.items()},
            "statistics": stats,
            "trends": {
                "incidents": incident_trends,
                "deployments": deployment_stats(snapshot.recent_deployments),
                "services": summarize_service_health(services),
            },
            "insights": generate_platform_insights(categories, stats),
        }
        if args.include_recommendations:
            analysis["recommendations"] = generate_recommendations(categories, args.focus_areas)

        logger.info(f"Platform health analysis completed: score={overall_score:.1f}")
        return text_content(analysis)

    except SQLAlchemyError:
        logger.exception("Database error analyzing platform health")
        raise


def _platform_metric_averages(session, since) -> dict:
    samples = list(session.execute(select(Metric).where(Metric.timestamp >= since)).scalars())
    aggregated = aggregate_metrics(samples, "24h")

    def _average(name: str) -> float | None:
        metric = aggregated.get(name)
        return metric.average if metric else None

    return {
        "avgResponseTime": _average("response_time"),
        "errorRate": _average("error_rate"),
        "throughput": _average("throughput"),
        "dataPoints": len(samples),
    }


def dashboard_metrics_resource(session_factory: SessionFactory = get_session) -> dict:
    """Headline counts for the dashboard: services, active incidents, 24h deployments, metrics and alerts."""
    try:
        now = utc_now()
        since = now - DASHBOARD_WINDOW

        with session_factory() as session:
            status_rows = session.execute(select(Service.status, func.count(Service.id)).group_by(Service.status)).all()
            by_status = dict(status_rows)

            active_incidents = list(
                session.execute(
                    select(Incident)
                    .options(selectinload(Incident.service))
                    .where(Incident.status.in_(ACTIVE_INCIDENT_STATUSES))
                    .order_by(Incident.detected_at.desc())
                ).scalars()
            )
            deployments = list(session.execute(select(Deployment).where(Deployment.started_at >= since)).scalars())

            dashboard = {
                "timestamp": now.isoformat(),
                "services": {
                    "total": sum(by_status.values()),
                    "active": by_status.get(ServiceStatus.ACTIVE.value, 0),
                    "deprecated": by_status.get(ServiceStatus.DEPRECATED.value, 0),
                },
                "incidents": {
                    "total": len(active_incidents),
                    "critical": sum(1 for i in active_incidents if i.severity == IncidentSeverity.CRITICAL),
                },
                "deployments": {
                    "total": len(deployments),
                    "successful": sum(1 for d in deployments if d.status == DeploymentStatus.SUCCESS),
                    "failed": sum(1 for d in deployments if d.status == DeploymentStatus.FAILED),
                    "pending": sum(1 for d in deployments if d.status == DeploymentStatus.PENDING),
                },
                "performance": _platform_metric_averages(session, since),
                "alerts": [
                    {
                        "id": incident.id,
                        "severity": incident.severity,
                        "message": incident.title,
                        "service": incident.service.name,
                        "triggeredAt": isoformat_or_none(incident.detected_at),
                    }
                    for incident in active_incidents
                    if incident.severity in ALERT_SEVERITIES
                ],
            }

        return text_content(dashboard)

    except SQLAlchemyError:
        logger.exception("Database error getting dashboard metrics")
        raise
