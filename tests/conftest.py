"""Shared test fixtures and configuration."""
import os
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.main import app
from app.core.config import Settings
from app.db.models import Base
from app.services.call_session.models import FraudVerdict
from app.services.fraud.classifier import FraudClassifier
from app.services.persistence.storage import DatabaseObjectStorage
from app.services.telephony.termination import CallTerminator
from tests.fakes import InMemoryStorage


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings():
    """Settings with fast fraud checks for testing."""
    return Settings(
        openai_api_key="test-key",
        twilio_account_sid="ACtest",
        twilio_auth_token="test-token",
        database_url=TEST_DATABASE_URL,
        base_url=None,
        fraud_check_interval_seconds=0.01,
        capability_timeout_seconds=1.0,
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def db_storage(test_session_factory):
    """Database-backed object storage on the test engine."""
    return DatabaseObjectStorage(test_session_factory)


@pytest.fixture
def memory_storage():
    """In-memory object storage."""
    return InMemoryStorage()


@pytest.fixture
def mock_classifier():
    """Classifier that returns a clear verdict."""
    classifier = Mock(spec=FraudClassifier)
    classifier.evaluate = AsyncMock(return_value=FraudVerdict(is_fraud=False))
    return classifier


@pytest.fixture
def mock_terminator():
    """Call terminator that records calls."""
    terminator = Mock(spec=CallTerminator)
    terminator.terminate = AsyncMock(return_value=None)
    return terminator


@pytest.fixture
def test_client():
    """Create FastAPI test client."""
    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
