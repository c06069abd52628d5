"""
Shared fixtures for the gateway test suite.

Every test gets its own SQLite file under ``tmp_path`` so stores, the HTTP
routes and the realtime channel can be exercised against real tables.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from socialhub.app.auth.session import create_session_jwt
from socialhub.app.config import Settings
from socialhub.app.main import create_application
from socialhub.app.storage import ConversationStore, Database, NotificationStore

INTERNAL_SECRET = "test-internal-secret-1234567890123456"
JWT_SECRET = "test-jwt-secret-1234567890123456"


# ============================================================================
# Settings / Application
# ============================================================================

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'socialhub.db'}"


@pytest.fixture
def mock_settings(database_url):
    """Create settings for testing"""
    return Settings(
        DATABASE_URL=database_url,
        SESSION_JWT_SECRET=JWT_SECRET,
        INTERNAL_SHARED_SECRET=INTERNAL_SECRET,
        ALLOWED_ORIGINS="http://localhost:5173",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def app(mock_settings):
    """Create test FastAPI application"""
    return create_application(mock_settings)


@pytest.fixture
def client(app):
    """
    Test client with the lifespan running.

    All WebSocket sessions opened from this client share one event loop, so
    several connections can talk to each other inside a test.
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(mock_settings):
    """Build an Authorization header carrying a session JWT for a user id."""
    def _headers(user_id: str) -> dict:
        token = create_session_jwt({"sub": user_id}, mock_settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ============================================================================
# Storage
# ============================================================================

@pytest_asyncio.fixture
async def database(database_url):
    database = Database(database_url)
    await database.init_models()
    yield database
    await database.dispose()


@pytest.fixture
def conversation_store(database):
    return ConversationStore(database)


@pytest.fixture
def notification_store(database):
    return NotificationStore(database)
