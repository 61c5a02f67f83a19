"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test database (SQLite in-memory for speed)
- Test client (FastAPI TestClient)
- Crypto vault with a fixed test key
- Linked / unlinked account factories
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.encryption import CryptoVault
from app.core.signature import get_channel_secret
from app.db.base import Base
from app.db.session import get_db
from app.environments.line.client import LineMessagingClient
from app.models.user_account import UserAccount


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# Use SQLite in-memory for fast tests (no PostgreSQL dependency)
# StaticPool keeps the same connection across all operations

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},  # Required for SQLite
    poolclass=StaticPool,  # Keep connection alive across operations
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4
TEST_CHANNEL_SECRET = "test-channel-secret"
TEST_REDIRECT_URI = "https://bot.example.com/auth/google/callback"
LINE_USER_ID = "U1234567890abcdef1234567890abcdef"
OTHER_LINE_USER_ID = "Ufedcba0987654321fedcba0987654321"

SAMPLE_CALENDARS = [
    {"id": "me@example.com", "summary": "Me", "primary": True, "backgroundColor": "#9fe1e7"},
    {"id": "team@group.calendar.google.com", "summary": "Team", "backgroundColor": "#f83a22"},
    {"id": "ja.japanese#holiday@group.v.calendar.google.com", "summary": "Holidays in Japan"},
]


# ---------------------------------------------------------------------------
# DATABASE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test function.

    - Creates all tables
    - Yields a session for the test
    - Drops all tables after test (clean slate)
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Factory for extra sessions on the test database (one per webhook event)."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database.

    Overrides the get_db dependency to use our test database and the
    channel secret dependency to use a fixed secret.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_channel_secret] = lambda: TEST_CHANNEL_SECRET

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# COMPONENT FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def vault() -> CryptoVault:
    return CryptoVault(key_hex=TEST_ENCRYPTION_KEY)


@pytest.fixture
def auth_client() -> MagicMock:
    """Google OAuth client double; refresh_access_token is an AsyncMock."""
    client = MagicMock()
    client.refresh_access_token = AsyncMock()
    client.exchange_code_for_tokens = AsyncMock()
    return client


@pytest.fixture
def line_client() -> MagicMock:
    client = MagicMock(spec=LineMessagingClient)
    client.reply_message = AsyncMock()
    client.get_message_content = AsyncMock(return_value=(b"\xff\xd8image", "image/jpeg"))
    return client


# ---------------------------------------------------------------------------
# ACCOUNT FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def make_account(db: Session, vault: CryptoVault) -> Callable[..., UserAccount]:
    """
    Factory for UserAccount rows.

    Args (keyword):
        line_user_id: LINE id (default LINE_USER_ID)
        linked: store encrypted tokens (default True)
        expires_in: timedelta until access token expiry (default 1 hour)
        calendars: list stored as the calendar cache (default SAMPLE_CALENDARS)
    """
    def _make(
        line_user_id: str = LINE_USER_ID,
        linked: bool = True,
        expires_in: Optional[timedelta] = timedelta(hours=1),
        calendars: Optional[list] = None,
        access_token: str = "access-token-1",
        refresh_token: str = "refresh-token-1",
    ) -> UserAccount:
        account = UserAccount(line_user_id=line_user_id)
        if linked:
            account.google_access_token = vault.encrypt(access_token)
            account.google_refresh_token = vault.encrypt(refresh_token)
            if expires_in is not None:
                account.google_token_expiry = datetime.now(timezone.utc) + expires_in
            account.google_calendars = json.dumps(
                SAMPLE_CALENDARS if calendars is None else calendars
            )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def linked_account(make_account) -> UserAccount:
    """Account with a valid (1 hour) Google credential."""
    return make_account()
