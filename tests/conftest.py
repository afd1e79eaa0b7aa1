"""
Pytest configuration and fixtures for GameRequest tests.

Provides fixtures for:
- Test settings (file-based SQLite, in-memory cache)
- Database and session factory
- Application and HTTP test client (lifespan running)
- Local test users and login helper
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from game_request.config.settings import Settings
from game_request.core.auth.local import LocalAuthProvider
from game_request.core.auth.provider import UserIdentity
from game_request.infrastructure.database.connection import Database
from game_request.main import create_app

TEST_SESSION_SECRET = "test-session-secret-0123456789abcdef"
TEST_WEBHOOK_SECRET = "test-webhook-secret-0123456789"

# Low bcrypt cost keeps user fixtures fast
TEST_BCRYPT_ROUNDS = 4

USER_PASSWORD = "player-pass-123"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings for an isolated app: file-based SQLite (shared across sessions) and memory cache."""
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test_db.sqlite'}",
        database_init_schema=True,
        cache_backend="memory",
        session_secret=TEST_SESSION_SECRET,
        auth_provider="local_auth",
        auth_local_fallback=True,
        enable_auto_sync=False,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Create test database with all tables."""
    db = Database(test_settings.database_url)
    await db.init_schema()

    yield db

    await db.drop_schema()
    await db.close()


@pytest.fixture
def session_factory(database: Database) -> async_sessionmaker:
    return database.session_factory


@pytest.fixture
def local_provider(session_factory) -> LocalAuthProvider:
    return LocalAuthProvider(session_factory, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest_asyncio.fixture
async def app(test_settings: Settings):
    """Application with its lifespan running (database, cache, auth manager)."""
    application = create_app(test_settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client against the running app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def app_local_provider(app) -> LocalAuthProvider:
    """Local provider writing to the running app's database."""
    return LocalAuthProvider(app.state.database.session_factory, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest_asyncio.fixture
async def test_user(app_local_provider: LocalAuthProvider) -> UserIdentity:
    """Create regular local user in the app database."""
    return await app_local_provider.create_user(
        email="player@example.com",
        password=USER_PASSWORD,
        name="Player One",
        username="player1",
    )


@pytest_asyncio.fixture
async def test_admin(app_local_provider: LocalAuthProvider) -> UserIdentity:
    """Create admin local user in the app database."""
    return await app_local_provider.create_user(
        email="admin@example.com",
        password=ADMIN_PASSWORD,
        name="Admin User",
        username="admin",
        is_admin=True,
    )


async def _login(client: AsyncClient, username: str, password: str):
    return await client.post("/api/auth/login", json={"username": username, "password": password})


@pytest.fixture
def login():
    """POST /api/auth/login helper; the client keeps the session cookie."""
    return _login


@pytest_asyncio.fixture
async def user_client(client: AsyncClient, test_user: UserIdentity) -> AsyncClient:
    """Client logged in as the regular test user."""
    response = await _login(client, "player1", USER_PASSWORD)
    assert response.status_code == 200
    return client


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, test_admin: UserIdentity) -> AsyncClient:
    """Client logged in as the admin test user."""
    response = await _login(client, "admin", ADMIN_PASSWORD)
    assert response.status_code == 200
    return client
