"""
Pytest configuration and fixtures

Tests run against a throw-away SQLite database file brought to the Alembic
head once per session. Every table is emptied after each test, so nothing
created during one test is visible to the next.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time: point the app at the test database first.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="bodycount-tests-")
TEST_DATABASE_URL = f"sqlite:///{Path(_TEST_DB_DIR) / 'test.db'}"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_dummy"
os.environ["SERVER_TIMEZONE"] = "UTC"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """Bring the test database to the latest Alembic revision."""
    from alembic import command

    from tests.helpers import alembic_config

    try:
        command.upgrade(alembic_config(TEST_DATABASE_URL), "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from fastapi.testclient import TestClient  # noqa: E402

from core.database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from services.insight_provider import ProviderError, get_insight_provider  # noqa: E402
from tests.helpers import FakeProvider, auth_headers, make_user  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    app.dependency_overrides.clear()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user(db_session):
    return make_user(db_session, credits=50, age=30)


@pytest.fixture
def headers(user):
    return auth_headers(user)


@pytest.fixture
def fake_provider():
    provider = FakeProvider()
    app.dependency_overrides[get_insight_provider] = lambda: provider
    return provider


@pytest.fixture
def failing_provider():
    provider = FakeProvider(error=ProviderError("The analysis service rejected the request", status_code=503))
    app.dependency_overrides[get_insight_provider] = lambda: provider
    return provider
