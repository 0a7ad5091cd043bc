import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["DEMO_SEED_ON_START"] = "false"
os.environ.pop("REDIS_URL", None)

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool, create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.core.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.services.realtime_service import RealtimePublisher, get_realtime  # noqa: E402

PASSWORD = "Secret123!"


class RecordingPublisher(RealtimePublisher):
    """Keeps published events in memory instead of sending them to redis."""

    def __init__(self):
        super().__init__(None)
        self.events: list[tuple[str, str, dict]] = []

    def publish(self, channel, event_type, payload):
        self.events.append((channel, event_type, payload))

    def types(self, channel: str | None = None) -> list[str]:
        return [
            event_type
            for event_channel, event_type, _ in self.events
            if channel is None or event_channel == channel
        ]


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    connection = engine.connect()
    trans = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, autoflush=False, expire_on_commit=False, future=True
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def realtime() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def client(db_session, realtime) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_realtime] = lambda: realtime
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, name: str, password: str = PASSWORD) -> dict:
    response = client.post(
        "/api/auth/register",
        json={"email": email, "name": name, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(session: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {session['accessToken']}"}


@pytest.fixture
def make_user(client):
    def _make(email: str, name: str, password: str = PASSWORD):
        session = register(client, email, name, password)
        return bearer(session), session["user"]

    return _make


@pytest.fixture
def alice(make_user) -> tuple[dict[str, str], dict]:
    return make_user("alice@example.com", "Alice")


@pytest.fixture
def bob(make_user) -> tuple[dict[str, str], dict]:
    return make_user("bob@example.com", "Bob")


@pytest.fixture
def workspace(client, alice) -> dict:
    headers, _ = alice
    response = client.post(
        "/api/workspaces",
        json={"name": "Acme", "key": "acme"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["workspace"]


@pytest.fixture
def joined_bob(client, alice, bob, workspace) -> tuple[dict[str, str], dict]:
    """Bob as a MEMBER of Alice's workspace."""
    invite = client.post(
        f"/api/workspaces/{workspace['id']}/invite",
        headers=alice[0],
    )
    assert invite.status_code == 201, invite.text
    joined = client.post(
        "/api/workspaces/join",
        json={"code": invite.json()["inviteCode"]},
        headers=bob[0],
    )
    assert joined.status_code == 200, joined.text
    return bob
