"""Root conftest for all tests.

Provides an in-memory SQLite session, a session factory that tool
functions accept in place of get_session(), and a small seeded platform.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from devforge.db.models import (
    Base,
    Deployment,
    DeploymentStatus,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    Metric,
    Service,
    ServiceDependency,
    ServiceStatus,
    Team,
    TeamMember,
    User,
    Workflow,
    WorkflowStatus,
)
from devforge.utils.timezone import utc_now
from devforge.workflows.runner import WorkflowRunner


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints in SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="function")
def db_session():
    """
    Provides a transactional in-memory SQLite DB session for tests.

    All work happens inside one connection-level transaction that is rolled
    back at teardown, so tests never see each other's rows.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)

    connection = engine.connect()
    transaction = connection.begin()

    test_session_local = sessionmaker(bind=connection, autocommit=False, autoflush=False)
    session = test_session_local()

    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()
        engine.dispose()


@pytest.fixture
def session_factory(db_session: Session):
    """Stand-in for get_session() that hands out the test session.

    Pending changes are flushed when a block exits cleanly so later queries
    see them; nothing is committed.
    """

    @contextmanager
    def _factory():
        yield db_session
        db_session.flush()

    return _factory


@pytest.fixture
def runner() -> WorkflowRunner:
    """Workflow runner with no simulated delays and tests that always pass."""
    return WorkflowRunner(delay_scale=0, test_failure_rate=0.0)


@dataclass
class SeededPlatform:
    now: datetime
    teams: dict[str, Team] = field(default_factory=dict)
    users: dict[str, User] = field(default_factory=dict)
    services: dict[str, Service] = field(default_factory=dict)
    workflows: dict[str, Workflow] = field(default_factory=dict)


def add_service(session: Session, owner: Team, name: str, **kwargs) -> Service:
    service = Service(
        name=name,
        display_name=kwargs.pop("display_name", name.replace("-", " ").title()),
        owner=owner,
        **kwargs,
    )
    session.add(service)
    return service


def add_dependency(session: Session, source: Service, target: Service, dep_type: str = "SYNC") -> ServiceDependency:
    edge = ServiceDependency(service=source, depends_on=target, type=dep_type)
    session.add(edge)
    return edge


@pytest.fixture
def platform(db_session: Session) -> SeededPlatform:
    """Five services across two teams with metrics, incidents, deployments and workflows.

    Service health at seed time:
        user-service     ACTIVE, 1 active incident        -> 80
        user-database    ACTIVE                           -> 100
        auth-service     ACTIVE, last deploy 40 days ago  -> 100 (90 when recency is checked)
        payment-service  DEPRECATED, 1 active incident    -> 50
        legacy-billing   MAINTENANCE                      -> 85
    """
    now = utc_now()
    seeded = SeededPlatform(now=now)

    platform_team = Team(name="platform", display_name="Platform Team")
    payments_team = Team(name="payments", display_name="Payments Team")
    db_session.add_all([platform_team, payments_team])
    seeded.teams = {"platform": platform_team, "payments": payments_team}

    alice = User(email="alice@example.com", first_name="Alice", last_name="Smith")
    bob = User(email="bob@example.com")
    db_session.add_all([alice, bob])
    seeded.users = {"alice": alice, "bob": bob}
    db_session.add_all(
        [
            TeamMember(team=platform_team, user=alice, role="LEAD"),
            TeamMember(team=payments_team, user=bob, role="MEMBER"),
        ]
    )

    user_service = add_service(
        db_session,
        platform_team,
        "user-service",
        type="API",
        language=["typescript"],
        framework="express",
        tags=["core"],
        repository_url="https://git.example.com/platform/user-service",
    )
    user_database = add_service(db_session, platform_team, "user-database", type="DATABASE", language=[])
    auth_service = add_service(db_session, platform_team, "auth-service", type="API", language=["python"])
    payment_service = add_service(
        db_session,
        payments_team,
        "payment-service",
        type="API",
        status=ServiceStatus.DEPRECATED.value,
        language=["go"],
    )
    legacy_billing = add_service(
        db_session,
        payments_team,
        "legacy-billing",
        type="BATCH",
        status=ServiceStatus.MAINTENANCE.value,
        language=["java"],
    )
    seeded.services = {
        s.name: s for s in (user_service, user_database, auth_service, payment_service, legacy_billing)
    }

    add_dependency(db_session, user_service, user_database)
    add_dependency(db_session, user_service, auth_service)
    add_dependency(db_session, auth_service, user_database)
    add_dependency(db_session, payment_service, user_service, dep_type="ASYNC")

    offsets = [timedelta(hours=4), timedelta(hours=3), timedelta(hours=2), timedelta(minutes=30)]
    for offset, response_time in zip(offsets, [100.0, 100.0, 200.0, 200.0]):
        db_session.add(
            Metric(service=user_service, name="response_time", value=response_time, unit="ms", timestamp=now - offset)
        )
        db_session.add(Metric(service=user_service, name="error_rate", value=1.0, unit="%", timestamp=now - offset))

    db_session.add_all(
        [
            Incident(
                service=user_service,
                title="Elevated latency",
                severity=IncidentSeverity.HIGH.value,
                status=IncidentStatus.OPEN.value,
                detected_at=now - timedelta(hours=1),
            ),
            Incident(
                service=payment_service,
                title="Security: leaked token",
                severity=IncidentSeverity.CRITICAL.value,
                status=IncidentStatus.INVESTIGATING.value,
                detected_at=now - timedelta(hours=2),
            ),
            Incident(
                service=auth_service,
                title="Login errors",
                severity=IncidentSeverity.LOW.value,
                status=IncidentStatus.RESOLVED.value,
                detected_at=now - timedelta(days=3),
                resolved_at=now - timedelta(days=3) + timedelta(hours=2),
                duration=2 * 60 * 60 * 1000,
            ),
        ]
    )

    db_session.add_all(
        [
            Deployment(
                service=user_service,
                version="1.4.0",
                status=DeploymentStatus.SUCCESS.value,
                started_at=now - timedelta(hours=6),
                completed_at=now - timedelta(hours=6) + timedelta(minutes=5),
                duration=300000,
            ),
            Deployment(
                service=payment_service,
                version="2.0.1",
                status=DeploymentStatus.FAILED.value,
                started_at=now - timedelta(days=2),
            ),
            Deployment(
                service=auth_service,
                version="0.9.0",
                status=DeploymentStatus.SUCCESS.value,
                started_at=now - timedelta(days=40),
            ),
        ]
    )

    pipeline = Workflow(
        name="deploy-pipeline",
        description="Test, deploy and notify",
        status=WorkflowStatus.ACTIVE.value,
        definition={
            "nodes": [
                {"id": "n1", "name": "Run tests", "type": "test"},
                {"id": "n2", "name": "Deploy", "type": "deploy"},
                {"id": "n3", "name": "Notify", "type": "notification", "config": {"recipients": ["oncall@example.com"]}},
            ],
            "edges": [{"source": "n1", "target": "n2"}, {"source": "n2", "target": "n3"}],
        },
    )
    draft = Workflow(name="draft-flow", status=WorkflowStatus.DRAFT.value, definition={"nodes": []})
    db_session.add_all([pipeline, draft])
    seeded.workflows = {"deploy-pipeline": pipeline, "draft-flow": draft}

    db_session.flush()
    return seeded


@pytest.fixture
def make_service(db_session: Session):
    def _make(owner: Team, name: str, **kwargs) -> Service:
        return add_service(db_session, owner, name, **kwargs)

    return _make


@pytest.fixture
def make_dependency(db_session: Session):
    def _make(source: Service, target: Service, dep_type: str = "SYNC") -> ServiceDependency:
        return add_dependency(db_session, source, target, dep_type)

    return _make
