"""
Pytest configuration and fixtures for consentgate tests
"""

import os
import sys
import tempfile
from collections.abc import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Test database URL - SQLite file by default so every event loop (pytest's and
# the TestClient portal's) can open its own connection.
# Can be overridden with TEST_DATABASE_URL environment variable
DEFAULT_TEST_DATABASE_URL = "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "consentgate_test.db")
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)

ADMIN_API_KEY = "test-admin-key"

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ADMIN_API_KEY"] = ADMIN_API_KEY

from consentgate.database import Base  # noqa: E402
from consentgate.models import ConsentLog, ConsentOption  # noqa: E402, F401

# Create test engine and session maker BEFORE importing the app
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

# Schema setup runs on a synchronous engine so it works for sync and async tests alike
_url = make_url(TEST_DATABASE_URL)
schema_engine = create_engine(_url.set(drivername=_url.get_backend_name()), poolclass=NullPool)

# Now import and patch the app's database components
import consentgate.database as database_module  # noqa: E402
from consentgate.main import app  # noqa: E402
from consentgate.middleware.rate_limit import limiter  # noqa: E402

# Replace the app's engine and session maker with test versions
database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal


@pytest.fixture(scope="function")
def setup_test_database():
    """
    Create a fresh schema for each test function that needs it.
    Tests should depend on this fixture (or fixtures that depend on it like test_db)
    to trigger database setup.
    """
    Base.metadata.drop_all(schema_engine)
    Base.metadata.create_all(schema_engine)

    yield

    Base.metadata.drop_all(schema_engine)


@pytest.fixture
def empty_database():
    """Make sure no consent tables exist."""
    Base.metadata.drop_all(schema_engine)


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests that need it."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Rate limit counters live in memory and would leak between tests."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def client(setup_test_database):
    """Create a test client for the FastAPI application with test database"""
    # Database is already patched at module level
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_API_KEY}"}


@pytest.fixture
def csrf_client(client):
    """Test client that already holds a CSRF cookie and sends the matching header."""
    response = client.get("/api/v1/consent/config")
    assert response.status_code == 200
    client.headers["X-CSRF-Token"] = response.json()["csrfToken"]
    return client
