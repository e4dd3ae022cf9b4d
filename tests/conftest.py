"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from planner.calendar.projection import view_cache
from planner.calendar.records import validate
from planner.calendar.store import EventStore
from planner.core.database import get_session
from planner.main import app
from planner.models import Draft, Event, Identity
from planner.routes.deps import current_identity

TEST_UID = "google-sub-123"
OTHER_UID = "google-sub-456"


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def clear_view_cache():
    """Cached views are process-wide; start every test without them."""
    view_cache.forget(TEST_UID)
    view_cache.forget(OTHER_UID)
    yield
    view_cache.forget(TEST_UID)
    view_cache.forget(OTHER_UID)


@pytest.fixture(name="identity")
def identity_fixture() -> Identity:
    return Identity(uid=TEST_UID, email="user@example.com", display_name="Test User")


@pytest.fixture(name="store")
def store_fixture(session: Session) -> EventStore:
    return EventStore(session, TEST_UID)


@pytest.fixture(name="other_store")
def other_store_fixture(session: Session) -> EventStore:
    return EventStore(session, OTHER_UID)


@pytest.fixture(name="client")
def client_fixture(session: Session, identity: Identity):
    """Create a signed-in test client with the test database session."""

    def get_session_override():
        return session

    def current_identity_override():
        return identity

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[current_identity] = current_identity_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="anon_client")
def anon_client_fixture(session: Session):
    """Create a test client with no signed-in user."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def make_event(store: EventStore, **fields) -> Event:
    """Create an event through the store from draft-style fields."""
    draft = Draft(**{"title": "Test Event", "date": "2024-06-03", **fields})
    event_id = store.create(validate(draft))
    return store.get(event_id)


@pytest.fixture(name="standup")
def standup_fixture(store: EventStore) -> Event:
    """A timed event on 2024-06-03."""
    return make_event(
        store,
        title="Standup",
        date="2024-06-03",
        start_time="09:00",
        end_time="09:15",
        location="Room 4",
    )


@pytest.fixture(name="holiday")
def holiday_fixture(store: EventStore) -> Event:
    """An all-day event on 2024-06-05."""
    return make_event(store, title="Holiday", date="2024-06-05")


@pytest.fixture(name="foreign_event")
def foreign_event_fixture(other_store: EventStore) -> Event:
    """An event owned by a different user."""
    return make_event(other_store, title="Not Yours", date="2024-06-03", start_time="10:00")
