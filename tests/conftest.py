# tests/conftest.py
import os

# Must be set before the application settings are imported
os.environ["STORE_BACKEND"] = "memory"
os.environ["COUNTDOWN_SECONDS"] = "0.05"

import logging
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dictation_room.main import app
from dictation_room.db.base import Base
from dictation_room.api import deps
from dictation_room.api.websockets import room_manager
from dictation_room.services.phrase_service import InMemoryPhraseSource
from dictation_room.services.room_service import RoomService
from dictation_room.stores.memory_store import InMemoryRoomStore

SQLALCHEMY_DATABASE_URL_TEST = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL_TEST,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create tables once for the entire test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """
    Provides a clean, isolated database session for each test function
    by using transactions and rollbacks.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()

@pytest.fixture(scope="function")
def sql_engine():
    """A private in-memory database per test, for code that opens its own sessions."""
    test_engine = create_engine(
        SQLALCHEMY_DATABASE_URL_TEST,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()

@pytest.fixture(scope="function")
def sql_session_factory(sql_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)


class FrozenClock:
    """Deterministic clock for the room service. Call it to read, `advance` to move."""
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()

@pytest.fixture
def room_store() -> InMemoryRoomStore:
    return InMemoryRoomStore()

@pytest.fixture
def phrase_source() -> InMemoryPhraseSource:
    return InMemoryPhraseSource(default_phrases=["alpha one", "beta two", "gamma three"])

@pytest_asyncio.fixture
async def room_service(room_store, phrase_source, clock):
    service = RoomService(room_store, phrase_source, clock=clock, countdown_seconds=0.01)
    yield service
    await service.scheduler.shutdown()


# --- API fixtures ---

@pytest.fixture
def api_room_service() -> RoomService:
    return RoomService(
        InMemoryRoomStore(),
        InMemoryPhraseSource(default_phrases=["alpha one", "beta two", "gamma three"]),
        countdown_seconds=0.05,
    )

@pytest.fixture
def client(api_room_service):
    """TestClient with a fresh room service. One event loop serves every request in a test."""
    app.dependency_overrides[deps.get_room_service] = lambda: api_room_service
    app.dependency_overrides[deps.get_phrase_source] = lambda: api_room_service.phrases
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(api_room_service.scheduler.shutdown)
    app.dependency_overrides.pop(deps.get_room_service, None)
    app.dependency_overrides.pop(deps.get_phrase_source, None)

@pytest.fixture
def make_identity(client):
    """Issues anonymous identities: returns (participant_id, auth headers)."""
    def _make():
        response = client.post("/api/v1/auth/anonymous")
        assert response.status_code == 200
        body = response.json()
        return body["participant_id"], {"Authorization": f"Bearer {body['access_token']}"}
    return _make

@pytest.fixture(autouse=True)
def reset_in_memory_state():
    """Clears in-memory connection state before each test."""
    room_manager.clear()
    yield

def pytest_configure(config):
    """
    Hook to configure logging levels before tests are run.
    This silences noisy third-party libraries.
    """
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
