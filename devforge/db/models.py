from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class ServiceStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DEPRECATED = "DEPRECATED"
    MAINTENANCE = "MAINTENANCE"
    EXPERIMENTAL = "EXPERIMENTAL"


class IncidentSeverity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class IncidentStatus(StrEnum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


ACTIVE_INCIDENT_STATUSES = (IncidentStatus.OPEN.value, IncidentStatus.INVESTIGATING.value)


class DeploymentStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ROLLED_BACK = "ROLLED_BACK"


class WorkflowStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DRAFT = "DRAFT"


class ExecutionStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class Team(Base):
    """Owning team for services."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String, nullable=False)

    members: Mapped[list[TeamMember]] = relationship(back_populates="team", cascade="all, delete-orphan")
    services: Mapped[list[Service]] = relationship(back_populates="owner")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the email address."""
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or self.email


class TeamMember(Base):
    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    team_id: Mapped[str] = mapped_column(String, ForeignKey("teams.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="MEMBER")

    team: Mapped[Team] = relationship(back_populates="members")
    user: Mapped[User] = relationship()

    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_member"),)


class Service(Base):
    """Service catalog entry.

    Stores:
    - identity: name (unique), display_name, description, type
    - lifecycle status: ACTIVE, DEPRECATED, MAINTENANCE, EXPERIMENTAL
    - stack: language (list), framework, tags (list)
    - repository: repository_url, branch
    - ownership: owner_id -> teams.id
    """

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="API")
    status: Mapped[str] = mapped_column(String, nullable=False, default=ServiceStatus.ACTIVE.value, index=True)
    language: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    framework: Mapped[str | None] = mapped_column(String, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    repository_url: Mapped[str | None] = mapped_column(String, nullable=True)
    branch: Mapped[str] = mapped_column(String, nullable=False, default="main")
    owner_id: Mapped[str] = mapped_column(String, ForeignKey("teams.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    owner: Mapped[Team] = relationship(back_populates="services")
    depends_on: Mapped[list[ServiceDependency]] = relationship(
        foreign_keys="ServiceDependency.service_id",
        back_populates="service",
        cascade="all, delete-orphan",
    )
    dependents: Mapped[list[ServiceDependency]] = relationship(
        foreign_keys="ServiceDependency.depends_on_id",
        back_populates="depends_on",
        cascade="all, delete-orphan",
    )
    metrics: Mapped[list[Metric]] = relationship(back_populates="service", cascade="all, delete-orphan")
    incidents: Mapped[list[Incident]] = relationship(back_populates="service", cascade="all, delete-orphan")
    deployments: Mapped[list[Deployment]] = relationship(back_populates="service", cascade="all, delete-orphan")


class ServiceDependency(Base):
    """Directed edge: service -> depends_on. The graph may contain cycles."""

    __tablename__ = "service_dependencies"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    service_id: Mapped[str] = mapped_column(String, ForeignKey("services.id"), nullable=False, index=True)
    depends_on_id: Mapped[str] = mapped_column(String, ForeignKey("services.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="SYNC")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    service: Mapped[Service] = relationship(foreign_keys=[service_id], back_populates="depends_on")
    depends_on: Mapped[Service] = relationship(foreign_keys=[depends_on_id], back_populates="dependents")

    __table_args__ = (UniqueConstraint("service_id", "depends_on_id", name="uq_service_dependency"),)


class Metric(Base):
    """Raw metric sample recorded by an external telemetry source.

    Samples are immutable facts: inserted, never updated.
    """

    __tablename__ = "metrics"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    service_id: Mapped[str] = mapped_column(String, ForeignKey("services.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    service: Mapped[Service] = relationship(back_populates="metrics")

    __table_args__ = (Index("idx_metrics_service_timestamp", "service_id", "timestamp"),)


class Incident(Base):
    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    service_id: Mapped[str] = mapped_column(String, ForeignKey("services.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String, nullable=False, default=IncidentSeverity.MEDIUM.value, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=IncidentStatus.OPEN.value, index=True)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # milliseconds

    service: Mapped[Service] = relationship(back_populates="incidents")


class Deployment(Base):
    __tablename__ = "deployments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    service_id: Mapped[str] = mapped_column(String, ForeignKey("services.id"), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String, nullable=False)
    environment: Mapped[str] = mapped_column(String, nullable=False, default="PRODUCTION")
    status: Mapped[str] = mapped_column(String, nullable=False, default=DeploymentStatus.PENDING.value, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # milliseconds

    service: Mapped[Service] = relationship(back_populates="deployments")


class Workflow(Base):
    """Workflow definition.

    definition holds {"nodes": [...], "edges": [...]}. Nodes run in list order;
    edges are stored for display only.
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=WorkflowStatus.ACTIVE.value, index=True)
    definition: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    executions: Mapped[list[WorkflowExecution]] = relationship(back_populates="workflow", cascade="all, delete-orphan")


class WorkflowExecution(Base):
    """One run of a workflow.

    Created at execution start with status PENDING and updated once on
    completion; in-flight state is never persisted.
    """

    __tablename__ = "workflow_executions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    workflow_id: Mapped[str] = mapped_column(String, ForeignKey("workflows.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, default="system")
    status: Mapped[str] = mapped_column(String, nullable=False, default=ExecutionStatus.PENDING.value, index=True)
    input: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    output: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    logs: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # milliseconds
    node_executions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    workflow: Mapped[Workflow] = relationship(back_populates="executions")
