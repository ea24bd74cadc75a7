"""Bounded, cycle-safe traversal of the service dependency relation."""

from __future__ import annotations

from sqlalchemy.orm import Session

from devforge.db.models import Service
from devforge.db.repository import find_service_by_name


def service_summary(service: Service) -> dict:
    return {"name": service.name, "type": service.type, "status": service.status}


def build_dependency_graph(
    session: Session,
    service_name: str,
    depth: int,
    visited: set[str] | None = None,
) -> dict | None:
    """Expand a service's dependencies and dependents recursively.

    The visited set is shared by the whole traversal, not reset per branch:
    a service reachable along two paths is expanded once and its later
    occurrences carry ``children: None``. This breaks cycles and bounds the
    number of lookups.

    Args:
        session: Open database session
        service_name: Service to expand (matched case-insensitively)
        depth: Remaining levels to expand; 0 or less expands nothing
        visited: Case-folded names already expanded in this traversal

    Returns:
        Graph node dict, or None when depth is exhausted, the service was
        already expanded, or the service does not exist
    """
    if visited is None:
        visited = set()

    key = service_name.lower()
    if depth <= 0 or key in visited:
        return None

    visited.add(key)

    service = find_service_by_name(session, service_name)
    if service is None:
        return None

    dependencies = []
    for edge in service.depends_on:
        target = edge.depends_on
        dependencies.append(
            {
                "service": service_summary(target),
                "type": edge.type,
                "description": edge.description,
                "children": build_dependency_graph(session, target.name, depth - 1, visited),
            }
        )

    dependents = []
    for edge in service.dependents:
        source = edge.service
        dependents.append(
            {
                "service": service_summary(source),
                "type": edge.type,
                "description": edge.description,
                "children": build_dependency_graph(session, source.name, depth - 1, visited),
            }
        )

    return {
        "service": service_summary(service),
        "dependencies": dependencies,
        "dependents": dependents,
    }
