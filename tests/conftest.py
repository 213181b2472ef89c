"""Pytest configuration and shared fixtures."""
import os

# Keep the module-level engine off the developer's database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from maintenance_engine.database import Base, build_engine, get_db
from maintenance_engine.models.domain import User, MaintenanceRequest  # noqa: F401
from maintenance_engine.models.audit import StatusHistoryEntry, WorkLogEntry  # noqa: F401
from maintenance_engine.services.lifecycle import RequestLifecycle


class SteppingClock:
    """Pinned clock that moves one second per reading, so rows get distinct timestamps."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + timedelta(seconds=1)
        return now

    def jump_to(self, moment: datetime) -> None:
        self.current = moment


@pytest.fixture
def engine():
    """Fresh in-memory database for each test, shared across threads."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def clock():
    return SteppingClock(datetime(2024, 1, 15, 9, 0, 0))


@pytest.fixture
def admin_user(db_session):
    user = User(username="admin", email="admin@example.com", first_name="Ada", last_name="Admin", role="admin")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def engineer_user(db_session):
    user = User(username="eng", email="eng@example.com", first_name="Ed", last_name="Engineer")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def lifecycle(db_session, clock):
    return RequestLifecycle(db_session, clock=clock)


@pytest.fixture
def sample_request(lifecycle, admin_user):
    """A Pending request for Acme Corp."""
    return lifecycle.create_request(
        {
            "client_name": "Acme Corp",
            "client_email": "ops@acme.example",
            "title": "Replace core switch",
            "description": "Core switch in rack B2 drops packets",
            "priority": "High",
            "category": "Network",
        },
        actor_id=admin_user.id,
    )


@pytest.fixture
def client(engine, clock, admin_user):
    """TestClient bound to the per-test database and the pinned clock."""
    from maintenance_engine import main
    from maintenance_engine.api import routes

    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def override_get_lifecycle(db: Session = Depends(get_db)):
        return RequestLifecycle(db, clock=clock)

    app = main.create_app(bind=engine)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[routes.get_lifecycle] = override_get_lifecycle

    with TestClient(app) as test_client:
        yield test_client
