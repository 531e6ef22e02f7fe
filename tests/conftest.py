"""
Test configuration and fixtures for Talkpulse.

Implements the transaction rollback pattern:
- Session-scoped database engine (in-memory SQLite unless TEST_DATABASE_URL is set)
- Function-scoped transactional session with automatic rollback
- TestClient with database, storage and webhook dependency overrides
- Authenticated client fixtures
"""

import os
from typing import Generator
from datetime import datetime, timedelta, timezone
import secrets

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import User, Session as UserSession
from app.services.storage_service import LocalObjectStorage, get_storage
from app.services.webhook_relay import WebhookRelay, get_webhook_relay


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    Priority:
    1. TEST_DATABASE_URL environment variable (e.g. a PostgreSQL database)
    2. In-memory SQLite

    Each test runs in a transaction that is rolled back afterwards, so no
    test data persists either way.
    """
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    """
    Create test database engine once per session.

    Tables are created at the start and dropped at the end.
    """
    database_url = get_test_database_url()

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # pysqlite needs to leave transaction control to SQLAlchemy for
        # SAVEPOINTs to work
        @event.listens_for(engine, "connect")
        def do_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    else:
        engine = create_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """
    Provide a transactional database session that rolls back after each test.

    Service code calls commit() and rollback(); both only act on a SAVEPOINT
    inside the outer test transaction.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, join_transaction_mode="create_savepoint"
    )
    session = TestingSessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Storage / Webhook Fixtures
# =============================================================================


@pytest.fixture
def storage(tmp_path) -> LocalObjectStorage:
    """Object storage rooted in a per-test temporary directory."""
    return LocalObjectStorage(
        root_dir=str(tmp_path / "storage"),
        bucket="qr-codes",
        public_base="/uploads",
    )


class WebhookRecorder:
    """Records requests sent to the mocked webhook endpoint."""

    def __init__(self, reply: str = ""):
        self.reply = reply
        self.requests = []
        self.fail_with = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with is not None:
            raise self.fail_with
        self.requests.append(request)
        return httpx.Response(200, text=self.reply)

    @property
    def bodies(self) -> list:
        return [r.content for r in self.requests]


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def relay(webhook: WebhookRecorder) -> WebhookRelay:
    """Relay wired to an in-process mock transport."""
    return WebhookRelay(
        target_url="https://hooks.example.com/webhook/test",
        timeout=5.0,
        transport=httpx.MockTransport(webhook.handler),
    )


# =============================================================================
# TestClient Fixtures
# =============================================================================


def _override_dependencies(db: Session, storage, relay) -> None:
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_webhook_relay] = lambda: relay


@pytest.fixture
def client(db: Session, storage, relay) -> Generator[TestClient, None, None]:
    """TestClient with database, storage and webhook dependency overrides."""
    _override_dependencies(db, storage, relay)

    with TestClient(app) as test_client:
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    import bcrypt

    password_hash = bcrypt.hashpw(
        "testpassword123".encode("utf-8"), bcrypt.gensalt()
    ).decode("utf-8")

    user = User(email="testuser@example.com", password_hash=password_hash)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def test_session(db: Session, test_user: User) -> UserSession:
    """Create a test session for the test user."""
    token = secrets.token_urlsafe(32)
    session = UserSession(
        user_id=test_user.id,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        user_agent="pytest-test-client",
        ip_address="127.0.0.1",
    )
    db.add(session)
    db.flush()
    return session


@pytest.fixture
def auth_client(
    db: Session, test_session: UserSession, storage, relay
) -> Generator[TestClient, None, None]:
    """
    Authenticated TestClient for the test user.

    Creates a separate TestClient instance to avoid cookie conflicts.
    """
    from app.config import settings

    _override_dependencies(db, storage, relay)

    with TestClient(app) as test_client:
        test_client.cookies.set(settings.session_cookie_name, test_session.token)
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def bearer_headers(test_session: UserSession) -> dict:
    """Authorization header carrying the test user's session token."""
    return {"Authorization": f"Bearer {test_session.token}"}


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "security: marks tests as security tests (deselect with '-m not security')",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m not slow')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
