"""Service catalog tools for the MCP server."""

from __future__ import annotations

from datetime import timedelta

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from devforge.analytics.aggregation import summarize_service_performance
from devforge.analytics.health import calculate_service_health
from devforge.catalog.dependency_graph import build_dependency_graph
from devforge.db.models import ACTIVE_INCIDENT_STATUSES, Deployment, Incident, Metric, Service
from devforge.db.repository import (
    count_active_incidents,
    count_dependency_edges,
    find_service_by_name,
    list_services,
    similar_service_names,
)
from devforge.db.session import SessionFactory, get_session
from devforge.mcp_server.content import not_found, text_content
from devforge.mcp_server.schemas import (
    GetServiceDependenciesInput,
    GetServiceInfoInput,
    ListServicesInput,
    parse_arguments,
)
from devforge.utils.timezone import isoformat_or_none, utc_now

PERFORMANCE_WINDOW = timedelta(hours=24)
PERFORMANCE_SAMPLE_LIMIT = 100
RECENT_DEPLOYMENT_LIMIT = 10


def _dependency_entry(summary_service: Service, edge_type: str, description: str | None) -> dict:
    return {
        "name": summary_service.name,
        "type": summary_service.type,
        "status": summary_service.status,
        "dependencyType": edge_type,
        "description": description,
    }


def get_service_info_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """Get detailed information about a single service.

    Returns basic metadata, repository, owning team with members, both
    directions of dependencies, health, a 24h performance summary and the
    most recent deployments.
    """
    args = parse_arguments(GetServiceInfoInput, arguments)
    service_name = args.service_name

    try:
        with session_factory() as session:
            service = find_service_by_name(session, service_name)
            if service is None:
                return not_found(
                    f'Service "{service_name}" not found',
                    suggestions=similar_service_names(session, service_name),
                )

            now = utc_now()
            recent_metrics = list(
                session.execute(
                    select(Metric)
                    .where(Metric.service_id == service.id, Metric.timestamp >= now - PERFORMANCE_WINDOW)
                    .order_by(Metric.timestamp.desc())
                    .limit(PERFORMANCE_SAMPLE_LIMIT)
                ).scalars()
            )
            deployments = list(
                session.execute(
                    select(Deployment)
                    .where(Deployment.service_id == service.id)
                    .order_by(Deployment.started_at.desc())
                    .limit(RECENT_DEPLOYMENT_LIMIT)
                ).scalars()
            )
            incidents = list(
                session.execute(
                    select(Incident)
                    .where(Incident.service_id == service.id, Incident.status.in_(ACTIVE_INCIDENT_STATUSES))
                    .order_by(Incident.detected_at.desc())
                ).scalars()
            )

            health_score = calculate_service_health(
                active_incidents=len(incidents),
                status=service.status,
                last_deployment_at=deployments[0].started_at if deployments else None,
                now=now,
            )

            service_info = {
                "basic": {
                    "id": service.id,
                    "name": service.name,
                    "displayName": service.display_name,
                    "description": service.description,
                    "type": service.type,
                    "status": service.status,
                    "language": service.language,
                    "framework": service.framework,
                    "tags": service.tags,
                },
                "repository": {
                    "url": service.repository_url,
                    "branch": service.branch,
                },
                "team": {
                    "name": service.owner.name,
                    "displayName": service.owner.display_name,
                    "members": [
                        {
                            "name": member.user.display_name,
                            "email": member.user.email,
                            "role": member.role,
                        }
                        for member in service.owner.members
                    ],
                },
                "dependencies": {
                    "dependsOn": [_dependency_entry(edge.depends_on, edge.type, edge.description) for edge in service.depends_on],
                    "dependents": [_dependency_entry(edge.service, edge.type, edge.description) for edge in service.dependents],
                },
                "health": {
                    "score": health_score,
                    "activeIncidents": len(incidents),
                    "incidents": [
                        {
                            "id": incident.id,
                            "title": incident.title,
                            "severity": incident.severity,
                            "status": incident.status,
                            "detectedAt": isoformat_or_none(incident.detected_at),
                        }
                        for incident in incidents
                    ],
                },
                "performance": summarize_service_performance(recent_metrics),
                "deployments": {
                    "recent": [
                        {
                            "id": deployment.id,
                            "version": deployment.version,
                            "environment": deployment.environment,
                            "status": deployment.status,
                            "startedAt": isoformat_or_none(deployment.started_at),
                            "completedAt": isoformat_or_none(deployment.completed_at),
                            "duration": deployment.duration,
                        }
                        for deployment in deployments
                    ],
                },
            }

        logger.info(f"Retrieved service info for: {service_name}")
        return text_content(service_info)

    except SQLAlchemyError:
        logger.exception(f"Database error getting service info for {service_name}")
        raise


def _catalog_rows(session, services: list[Service]) -> list[dict]:
    ids = [s.id for s in services]
    active_counts = count_active_incidents(session, ids)
    outgoing, incoming = count_dependency_edges(session, ids)
    rows = []
    for service in services:
        active = active_counts.get(service.id, 0)
        rows.append(
            {
                "id": service.id,
                "name": service.name,
                "displayName": service.display_name,
                "description": service.description,
                "type": service.type,
                "status": service.status,
                "language": service.language,
                "framework": service.framework,
                "team": {
                    "name": service.owner.name,
                    "displayName": service.owner.display_name,
                },
                "dependencyCount": outgoing.get(service.id, 0),
                "dependentCount": incoming.get(service.id, 0),
                "activeIncidents": active,
                "tags": service.tags,
                "healthScore": calculate_service_health(active_incidents=active, status=service.status),
            }
        )
    return rows


def list_services_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """List services ordered by name, optionally filtered by team, type, status or language."""
    args = parse_arguments(ListServicesInput, arguments)
    filters = {
        "team": args.team,
        "type": args.type,
        "status": args.status.value if args.status else None,
        "language": args.language,
    }

    try:
        with session_factory() as session:
            services = list_services(
                session,
                team=args.team,
                service_type=args.type,
                status=filters["status"],
                language=args.language,
                limit=args.limit,
            )
            rows = _catalog_rows(session, services)

        logger.info(f"Listed {len(rows)} services with filters: {filters}")
        return text_content({"totalCount": len(rows), "filters": filters, "services": rows})

    except SQLAlchemyError:
        logger.exception("Database error listing services")
        raise


def get_service_dependencies_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """Dependency graph rooted at a service, expanded to the requested depth.

    ``depth`` 0 yields ``graph: null`` for a known service.
    """
    args = parse_arguments(GetServiceDependenciesInput, arguments)

    try:
        with session_factory() as session:
            if find_service_by_name(session, args.service_name) is None:
                return not_found(
                    f'Service "{args.service_name}" not found',
                    suggestions=similar_service_names(session, args.service_name),
                )
            graph = build_dependency_graph(session, args.service_name, args.depth)

        logger.info(f"Built dependency graph for {args.service_name} with depth {args.depth}")
        return text_content({"rootService": args.service_name, "depth": args.depth, "graph": graph})

    except SQLAlchemyError:
        logger.exception(f"Database error getting dependencies for {args.service_name}")
        raise


def _count_by(rows: list[dict], key: str) -> dict[str, int]:
    groups: dict[str, int] = {}
    for row in rows:
        groups[row[key]] = groups.get(row[key], 0) + 1
    return groups


def service_catalog_resource(session_factory: SessionFactory = get_session) -> dict:
    """Full service catalog with counts by type and status."""
    try:
        with session_factory() as session:
            services = list_services(session)
            rows = _catalog_rows(session, services)

        catalog = {
            "totalServices": len(rows),
            "servicesByType": _count_by(rows, "type"),
            "servicesByStatus": _count_by(rows, "status"),
            "services": rows,
        }
        return text_content(catalog)

    except SQLAlchemyError:
        logger.exception("Database error getting full catalog")
        raise
