"""Pytest fixtures and configuration for tasksync tests."""

import os

from cryptography.fernet import Fernet

# Must be set before tasksync.database is imported (engine is built at import time).
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))

import pytest
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from tasksync.database.database import Base
from tasksync.database.calendar_config_repository import CalendarConfigRepository
from tasksync.database.repository import TaskRepository
from tasksync.models.calendar_config import SyncDirection
from tasksync.models.task import Task
from tasksync.sync.errors import CredentialsExpiredError, ProviderAPIError
from tasksync.sync.transcoder import to_rfc3339


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


class FakeCalendarClient:
    """In-memory stand-in for GoogleCalendarClient.

    Stores events the way the provider returns them (offset-bearing dateTime,
    `updated` stamped on every write). Failures are injected per call:

        client.fail_on("insert_event", 3, ProviderAPIError(...))  # third insert fails
        client.fail_always("list_events_in_range", CredentialsExpiredError())
    """

    def __init__(self, calendar_id: str = "primary"):
        self.calendar_id = calendar_id
        self.events: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self._failures: Dict[tuple, Exception] = {}
        self._always: Dict[str, Exception] = {}
        self._counts: Dict[str, int] = {}
        self._next_id = 1

    # -- failure injection -------------------------------------------------

    def fail_on(self, method: str, nth_call: int, error: Exception) -> None:
        self._failures[(method, nth_call)] = error

    def fail_always(self, method: str, error: Exception) -> None:
        self._always[method] = error

    def _record(self, method: str, *args) -> None:
        self.calls.append((method,) + args)
        self._counts[method] = self._counts.get(method, 0) + 1
        if method in self._always:
            raise self._always[method]
        error = self._failures.get((method, self._counts[method]))
        if error is not None:
            raise error

    def call_count(self, method: Optional[str] = None) -> int:
        if method is None:
            return len(self.calls)
        return self._counts.get(method, 0)

    # -- provider view -----------------------------------------------------

    @staticmethod
    def _as_provider_boundary(boundary: Dict[str, Any]) -> Dict[str, Any]:
        if "dateTime" not in boundary:
            return dict(boundary)
        local = datetime.fromisoformat(boundary["dateTime"])
        if local.tzinfo is None:
            local = local.replace(tzinfo=ZoneInfo(boundary.get("timeZone") or "UTC"))
        return {"dateTime": local.isoformat(), "timeZone": boundary.get("timeZone")}

    def _store(self, event_id: str, body: Dict[str, Any], existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        event = dict(existing or {})
        event.update(body)
        event["id"] = event_id
        event["status"] = event.get("status", "confirmed")
        for key in ("start", "end"):
            if key in body:
                event[key] = self._as_provider_boundary(body[key])
        event["updated"] = to_rfc3339(datetime.utcnow())
        self.events[event_id] = event
        return dict(event)

    def add_provider_event(self, event: Dict[str, Any]) -> None:
        """Seed an event as if the user created it in the calendar UI."""
        self.events[event["id"]] = dict(event)

    # -- GoogleCalendarClient interface ------------------------------------

    def insert_event(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self._record("insert_event", body)
        event_id = f"evt-{self._next_id}"
        self._next_id += 1
        return self._store(event_id, body)

    def patch_event(self, event_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self._record("patch_event", event_id, body)
        if event_id not in self.events:
            raise ProviderAPIError(status_code=404, body="Not Found", action="update event")
        return self._store(event_id, body, self.events[event_id])

    def delete_event(self, event_id: str) -> bool:
        self._record("delete_event", event_id)
        return self.events.pop(event_id, None) is not None

    def list_events_in_range(self, time_min_rfc3339: str, time_max_rfc3339: str, **kwargs) -> List[Dict[str, Any]]:
        self._record("list_events_in_range", time_min_rfc3339, time_max_rfc3339)
        return [dict(event) for event in self.events.values()]


@pytest.fixture
def test_user_id():
    """Test user ID for multi-user testing."""
    return "test-user-123"


@pytest.fixture(scope="function")
def session_factory(test_user_id):
    """Session factory bound to a fresh in-memory database with a seeded test user."""
    from tasksync.database.models import UserDB
    from tasksync.models.user import User

    # StaticPool so every session sees the same in-memory database
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Create test user (required for foreign key constraints)
    session = TestingSessionLocal()
    now = datetime.utcnow()
    session.add(UserDB.from_pydantic(
        User(id=test_user_id, email="test@example.com", name="Test User", created_at=now, updated_at=now)
    ))
    session.commit()
    session.close()

    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def config_repository(db_session: Session):
    """Create a CalendarConfigRepository instance for testing."""
    return CalendarConfigRepository(db_session)


@pytest.fixture
def future_date():
    """A date safely in the future in every timezone."""
    return date.today() + timedelta(days=3)


@pytest.fixture
def sample_task_base(test_user_id, future_date):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    now = datetime.utcnow()
    return {
        "id": str(uuid.uuid4()),
        "user_id": test_user_id,
        "source_type": "api",
        "title": "Test Task",
        "description": "Test description",
        "date": future_date,
        "scheduled_start": None,
        "scheduled_end": None,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def make_task(task_repository, sample_task_base):
    """Persist a task with overrides; returns the stored Task."""

    def _make(**overrides) -> Task:
        data = {**sample_task_base, "id": str(uuid.uuid4()), **overrides}
        return task_repository.create(Task(**data))

    return _make


@pytest.fixture
def fake_client():
    return FakeCalendarClient()


@pytest.fixture
def client_factory(fake_client):
    """Client factory handing out the shared fake; records the configs it was built from."""
    built = []

    def _factory(config):
        built.append(config)
        return fake_client

    _factory.built = built
    return _factory


@pytest.fixture
def connect_calendar(config_repository, test_user_id):
    """Save a calendar connection for the test user and return the config."""

    def _connect(
        *,
        expiry: Optional[datetime] = None,
        is_enabled: bool = True,
        sync_direction: SyncDirection = SyncDirection.BIDIRECTIONAL,
        timezone: str = "Europe/Paris",
    ):
        config_repository.upsert_credentials(
            test_user_id,
            "test_access_token_value",
            "test_refresh_token_value",
            expiry or datetime.utcnow() + timedelta(hours=1),
            account_email="test@example.com",
        )
        return config_repository.update_preferences(
            test_user_id,
            is_enabled=is_enabled,
            sync_direction=sync_direction,
            timezone=timezone,
        )

    return _connect


@pytest.fixture
def connected_config(connect_calendar):
    """An enabled, bidirectional, unexpired connection in Europe/Paris."""
    return connect_calendar()


@pytest.fixture
def test_user(test_user_id):
    """Create a test user object."""
    from tasksync.models.user import User

    now = datetime.utcnow()
    return User(
        id=test_user_id,
        email="test@example.com",
        name="Test User",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def test_client(db_session: Session, session_factory, client_factory, test_user):
    """FastAPI test client with overridden database, auth, and calendar client dependencies."""
    from tasksync.api.app import app, get_background_session_factory, get_calendar_client_factory
    from tasksync.database.database import get_db
    from tasksync.auth.dependencies import get_current_user

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_background_session_factory] = lambda: session_factory
    app.dependency_overrides[get_calendar_client_factory] = lambda: client_factory

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
