import os

# Settings are read at import time; configure the environment first
TEST_DATABASE_URL = "sqlite:///./job-tracker-test.db"
os.environ.setdefault("JWT_SECRET", "test-signing-secret")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("AWS_EMF_ENVIRONMENT", "Local")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

# --- Alembic Imports ---
from alembic.config import Config
from alembic import command
# --- End Alembic Imports ---

# Import app and dependency functions first
from main import app
import crud
from auth import Authenticator, get_authenticator
from database import Base, get_db
from errors import ProviderError
from llm_interaction import get_completion_provider
from mailer import get_mailer

TEST_SECRET = "test-signing-secret"

connect_args = (
    {"check_same_thread": False} if TEST_DATABASE_URL.startswith("sqlite") else {}
)
test_engine = create_engine(TEST_DATABASE_URL, connect_args=connect_args)


@event.listens_for(test_engine, "connect")
def _enforce_foreign_keys(dbapi_connection, connection_record):
    # Same owner constraints as the app engine
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def ensure_user(db, email, password_hash="not-a-bcrypt-hash"):
    """Create the owner row that jobs and AI log entries reference."""
    user = crud.get_user_by_email(db, email)
    if user is None:
        user = crud.create_user(db, email=email, password_hash=password_hash)
    return user


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models and stamp with Alembic head."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    if os.path.exists(db_path):
        os.unlink(db_path)

    Base.metadata.create_all(bind=test_engine)

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    command.stamp(alembic_cfg, "head")

    yield  # Tests run here

    test_engine.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture(scope="function", autouse=True)
def clean_tables(setup_test_database):
    """Empty every table after each test so owners and ids never leak across tests."""
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Yields a SQLAlchemy session directly from the test factory."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def authenticator() -> Authenticator:
    # Low bcrypt cost keeps the suite fast; the algorithm is unchanged
    return Authenticator(secret=TEST_SECRET, expire_minutes=60, rounds=4)


# --- Fake collaborators ---
class FakeCompletionProvider:
    def __init__(self, reply="Add more metrics to your experience section."):
        self.reply = reply
        self.error = None
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    def fail_with(self, message="provider unavailable"):
        self.error = ProviderError(message)


class FakeMailer:
    def __init__(self, failing_recipients=()):
        self.failing_recipients = set(failing_recipients)
        self.sent = []

    def send_message(self, to, subject, body):
        if to in self.failing_recipients:
            raise ConnectionError(f"SMTP refused {to}")
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture(scope="function")
def fake_provider() -> FakeCompletionProvider:
    return FakeCompletionProvider()


@pytest.fixture(scope="function")
def fake_mailer() -> FakeMailer:
    return FakeMailer()


# Override the app dependencies for tests
@pytest.fixture(scope="function")
def override_dependencies(authenticator, fake_provider, fake_mailer):
    """Point the app at the test database, fast authenticator and fakes.

    get_db yields a new session per API call, allowing proper transaction
    handling within FastAPI endpoints.
    """

    def _override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_authenticator] = lambda: authenticator
    app.dependency_overrides[get_completion_provider] = lambda: fake_provider
    app.dependency_overrides[get_mailer] = lambda: fake_mailer

    yield

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_client(override_dependencies):
    """Provides a test client configured with our test database and fakes."""
    return TestClient(app)


@pytest.fixture(scope="function")
def register_and_login(test_client):
    """Register a user through the API and return its bearer auth headers."""

    def _register_and_login(email="owner@example.com", password="pw1"):
        response = test_client.post("/register", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        response = test_client.post("/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register_and_login
