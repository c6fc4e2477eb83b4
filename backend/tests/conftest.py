import os

# Settings are read once and cached, so the test environment has to be in
# place before anything from swapnet is imported.
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-for-the-suite")

import dotenv  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import swapnet.database as _db_mod  # noqa: E402
from swapnet.auth.security import hash_password  # noqa: E402
from swapnet.auth.security import issue_access_token  # noqa: E402
from swapnet.crud import crud  # noqa: E402
from swapnet.database import Base  # noqa: E402
from swapnet.database import get_db  # noqa: E402
from swapnet.database import make_engine  # noqa: E402
from swapnet.database import make_sessionmaker  # noqa: E402
from swapnet.events import EventType  # noqa: E402
from swapnet.events import event_bus  # noqa: E402
from swapnet.websocket.manager import topic_manager  # noqa: E402

dotenv.load_dotenv()


# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# WebSocket handlers open their own sessions through the default factory
_db_mod.default_session_factory = TestingSessionLocal

# Import app after engine setup is in place
from swapnet.main import app  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def cleanup_global_resources():
    """Detach the global topic manager from the event bus after the session."""
    yield

    topic_manager.active_connections.clear()
    topic_manager.topic_subscriptions.clear()
    topic_manager.client_topics.clear()

    for event_type in (
        EventType.CONNECTION_REQUESTED,
        EventType.CONNECTION_ACCEPTED,
        EventType.CONNECTION_REJECTED,
        EventType.CONNECTION_DELETED,
        EventType.BARTER_CREATED,
        EventType.BARTER_UPDATED,
        EventType.BARTER_DELETED,
    ):
        event_bus.unsubscribe(event_type, topic_manager._handle_ledger_event)
    event_bus.unsubscribe(EventType.MESSAGE_CREATED, topic_manager._handle_message_event)
    event_bus.unsubscribe(EventType.USER_UPDATED, topic_manager._handle_user_event)


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    Base.metadata.create_all(bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """
    Create a FastAPI TestClient with the test database dependency.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app, backend="asyncio")
    yield client

    app.dependency_overrides = {}


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    """Factory that inserts a user row directly (skips the HTTP layer)."""

    counter = {"n": 0}

    def _make(first_name: str = "Test", last_name: str = "User", email: str = None, password: str = "secret"):
        counter["n"] += 1
        return crud.create_user(
            db_session,
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("Alice", "Anders", email="alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("Bob", "Brown", email="bob@example.com")


@pytest.fixture
def carol(make_user):
    return make_user("Carol", "Chen", email="carol@example.com")


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {issue_access_token(user.id, user.email)}"}


@pytest.fixture
def headers_for():
    return auth_headers
