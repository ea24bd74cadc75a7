"""Incident impact, summary and daily trend calculations."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from devforge.db.models import ACTIVE_INCIDENT_STATUSES
from devforge.utils.timezone import to_utc

SEVERITY_WEIGHTS = {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "CRITICAL": 4}
MAX_DURATION_IMPACT = 10
MS_PER_HOUR = 1000 * 60 * 60
MS_PER_MINUTE = 1000 * 60


class IncidentLike(Protocol):
    severity: str
    status: str
    detected_at: datetime
    duration: int | None


def calculate_incident_impact(severity: str, duration_ms: int | None) -> dict:
    """Severity weight plus up to 10 points for duration (one point per two hours)."""
    impact = float(SEVERITY_WEIGHTS.get(severity, 1))

    if duration_ms:
        hours = duration_ms / MS_PER_HOUR
        impact += min(MAX_DURATION_IMPACT, hours / 2)

    if impact < 3:
        level = "low"
    elif impact < 6:
        level = "medium"
    else:
        level = "high"

    return {"score": round(impact), "level": level}


def generate_incident_summary(incidents: Iterable[IncidentLike]) -> dict:
    incidents = list(incidents)
    by_severity: dict[str, int] = {}
    by_status: dict[str, int] = {}
    active_count = 0

    for incident in incidents:
        by_severity[incident.severity] = by_severity.get(incident.severity, 0) + 1
        by_status[incident.status] = by_status.get(incident.status, 0) + 1
        if incident.status in ACTIVE_INCIDENT_STATUSES:
            active_count += 1

    durations = [i.duration for i in incidents if i.duration]
    avg_resolution_minutes = round(sum(durations) / len(durations) / MS_PER_MINUTE) if durations else 0

    return {
        "total": len(incidents),
        "bySeverity": by_severity,
        "byStatus": by_status,
        "avgResolutionTime": avg_resolution_minutes,
        "activeCount": active_count,
    }


def analyze_incident_trends(incidents: Iterable[IncidentLike]) -> dict:
    """Per-day incident counts: total, average over days with incidents, and the peak day."""
    by_day: dict[str, int] = {}
    total = 0
    for incident in incidents:
        day = to_utc(incident.detected_at).date().isoformat()
        by_day[day] = by_day.get(day, 0) + 1
        total += 1

    avg_per_day = total / len(by_day) if by_day else 0.0

    peak = {"day": "", "count": 0}
    for day, count in by_day.items():
        if count > peak["count"]:
            peak = {"day": day, "count": count}

    return {
        "totalIncidents": total,
        "avgPerDay": round(avg_per_day, 2),
        "peakDay": peak,
    }
