"""Read queries shared by the tool handlers.

Every function takes an open Session; callers own the session lifecycle.
Name lookups are case-insensitive exact matches.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from devforge.db.models import (
    ACTIVE_INCIDENT_STATUSES,
    Deployment,
    Incident,
    Metric,
    Service,
    ServiceDependency,
    Team,
    Workflow,
    WorkflowStatus,
)

MAX_SUGGESTIONS = 5


def find_service_by_name(session: Session, name: str) -> Service | None:
    stmt = (
        select(Service)
        .where(func.lower(Service.name) == name.lower())
        .options(
            selectinload(Service.depends_on).selectinload(ServiceDependency.depends_on),
            selectinload(Service.dependents).selectinload(ServiceDependency.service),
        )
    )
    return session.execute(stmt).scalars().first()


def find_active_workflow_by_name(session: Session, name: str) -> Workflow | None:
    stmt = select(Workflow).where(
        func.lower(Workflow.name) == name.lower(),
        Workflow.status == WorkflowStatus.ACTIVE.value,
    )
    return session.execute(stmt).scalars().first()


def similar_names(candidates: list[str], query: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
    """Return names that contain the query, or are contained in it, ignoring case.

    Args:
        candidates: Full list of known names
        query: Name that failed to match
        limit: Maximum number of suggestions

    Returns:
        Up to ``limit`` matching names in candidate order
    """
    needle = query.lower()
    matches = [name for name in candidates if needle in name.lower() or name.lower() in needle]
    return matches[:limit]


def similar_service_names(session: Session, query: str) -> list[str]:
    names = list(session.execute(select(Service.name).order_by(Service.name)).scalars())
    return similar_names(names, query)


def similar_workflow_names(session: Session, query: str) -> list[str]:
    names = list(
        session.execute(
            select(Workflow.name).where(Workflow.status == WorkflowStatus.ACTIVE.value).order_by(Workflow.name)
        ).scalars()
    )
    return similar_names(names, query)


def count_active_incidents(session: Session, service_ids: list[str]) -> dict[str, int]:
    """Count OPEN/INVESTIGATING incidents per service id."""
    if not service_ids:
        return {}
    rows = session.execute(
        select(Incident.service_id, func.count(Incident.id))
        .where(Incident.service_id.in_(service_ids), Incident.status.in_(ACTIVE_INCIDENT_STATUSES))
        .group_by(Incident.service_id)
    ).all()
    return {service_id: count for service_id, count in rows}


def count_dependency_edges(session: Session, service_ids: list[str]) -> tuple[dict[str, int], dict[str, int]]:
    """Count outgoing and incoming dependency edges per service id."""
    if not service_ids:
        return {}, {}
    outgoing = session.execute(
        select(ServiceDependency.service_id, func.count(ServiceDependency.id))
        .where(ServiceDependency.service_id.in_(service_ids))
        .group_by(ServiceDependency.service_id)
    ).all()
    incoming = session.execute(
        select(ServiceDependency.depends_on_id, func.count(ServiceDependency.id))
        .where(ServiceDependency.depends_on_id.in_(service_ids))
        .group_by(ServiceDependency.depends_on_id)
    ).all()
    return dict(outgoing), dict(incoming)


def list_services(
    session: Session,
    *,
    team: str | None = None,
    service_type: str | None = None,
    status: str | None = None,
    language: str | None = None,
    limit: int | None = None,
) -> list[Service]:
    stmt = select(Service).options(selectinload(Service.owner)).order_by(Service.name)
    if team:
        stmt = stmt.join(Team, Service.owner_id == Team.id).where(func.lower(Team.name) == team.lower())
    if service_type:
        stmt = stmt.where(Service.type == service_type)
    if status:
        stmt = stmt.where(Service.status == status)
    services = list(session.execute(stmt).scalars())
    # language is a JSON list; membership is checked in Python to stay portable across backends
    if language:
        services = [s for s in services if language in (s.language or [])]
    if limit is not None:
        services = services[:limit]
    return services


def metrics_since(session: Session, service_id: str, since: datetime, names: list[str] | None = None) -> list[Metric]:
    stmt = select(Metric).where(Metric.service_id == service_id, Metric.timestamp >= since)
    if names:
        stmt = stmt.where(Metric.name.in_(names))
    return list(session.execute(stmt.order_by(Metric.timestamp.asc())).scalars())


def incidents_since(session: Session, since: datetime) -> list[Incident]:
    stmt = select(Incident).options(selectinload(Incident.service)).where(Incident.detected_at >= since)
    return list(session.execute(stmt).scalars())


def deployments_since(session: Session, since: datetime) -> list[Deployment]:
    return list(session.execute(select(Deployment).where(Deployment.started_at >= since)).scalars())
