"""Integration tests for local account endpoints

Covers /api/auth/basic/* (login, registration, first-admin setup, password
management) and the setup wizard connectivity check.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

USER_PASSWORD = "player-pass-123"
ADMIN_PASSWORD = "admin-pass-123"
NEW_PASSWORD = "brand-new-pass-456"


@pytest_asyncio.fixture
async def anonymous(app):
    """Second client without cookies against the same app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def registration_on(app):
    app.state.settings.registration_enabled = True


async def basic_login(client: AsyncClient, username: str, password: str):
    return await client.post("/api/auth/basic/login", json={"username": username, "password": password})


@pytest.mark.integration
class TestBasicLogin:
    """Test POST /api/auth/basic/login"""

    @pytest.mark.asyncio
    async def test_login_with_local_primary(self, client, test_user):
        """Happy path: local primary uses the regular session cookie"""
        response = await basic_login(client, "player1", USER_PASSWORD)

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "player1"
        assert "session" in response.cookies
        assert "basic_auth_session" not in response.cookies

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, test_user):
        response = await basic_login(client, "player1", "wrong-password")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid username or password"}

    @pytest.mark.asyncio
    async def test_login_next_to_unreachable_api(self, admin_client, test_user, anonymous):
        """Happy path: local login still works while the external user API is down"""
        switched = await admin_client.post(
            "/api/integrations/config",
            json={
                "provider": "api_integration",
                "config": {"base_url": "http://127.0.0.1:9", "api_key": "key-123"},
            },
        )
        assert switched.status_code == 200

        response = await basic_login(anonymous, "player1", USER_PASSWORD)

        assert response.status_code == 200
        assert response.json()["user"]["provider"] == "local_auth"
        assert "basic_auth_session" in response.cookies

        me = await anonymous.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["username"] == "player1"


@pytest.mark.integration
class TestRegistration:
    """Test POST /api/auth/basic/register"""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, client):
        response = await client.post(
            "/api/auth/basic/register",
            json={"username": "newbie", "email": "newbie@example.com", "password": NEW_PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "User registration is currently disabled"

    @pytest.mark.asyncio
    async def test_register_then_login(self, client, registration_on):
        """Happy path: new account can log in right away"""
        response = await client.post(
            "/api/auth/basic/register",
            json={"username": "newbie", "email": "newbie@example.com", "password": NEW_PASSWORD},
        )

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["username"] == "newbie"
        assert user["is_admin"] is False

        login = await basic_login(client, "newbie", NEW_PASSWORD)
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_username_taken(self, client, test_user, registration_on):
        response = await client.post(
            "/api/auth/basic/register",
            json={"username": "player1", "email": "other@example.com", "password": NEW_PASSWORD},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Username is already taken"

    @pytest.mark.asyncio
    async def test_email_taken(self, client, test_user, registration_on):
        response = await client.post(
            "/api/auth/basic/register",
            json={"username": "player2", "email": "player@example.com", "password": NEW_PASSWORD},
        )

        assert response.status_code == 409

    @pytest.mark.parametrize(
        "payload",
        [
            {"username": "a!", "email": "bad@example.com", "password": NEW_PASSWORD},
            {"username": "shorty", "email": "shorty@example.com", "password": "short"},
            {"username": "noemail", "email": "not-an-email", "password": NEW_PASSWORD},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_payload(self, client, registration_on, payload):
        """Bad input: username pattern, password length and email format"""
        response = await client.post("/api/auth/basic/register", json=payload)

        assert response.status_code == 422
        assert response.json()["success"] is False


@pytest.mark.integration
class TestInitialSetup:
    """Test GET/POST /api/auth/basic/setup"""

    @pytest.mark.asyncio
    async def test_fresh_install_needs_setup(self, client, test_user):
        """Edge case: regular users do not complete setup"""
        response = await client.get("/api/auth/basic/setup")

        assert response.status_code == 200
        assert response.json()["needs_setup"] is True

    @pytest.mark.asyncio
    async def test_create_first_admin_once(self, client):
        """Happy path then bad input: second setup attempt refused"""
        payload = {"username": "root", "email": "root@example.com", "password": ADMIN_PASSWORD}

        created = await client.post("/api/auth/basic/setup", json=payload)

        assert created.status_code == 200
        assert created.json()["user"]["is_admin"] is True
        assert (await client.get("/api/auth/basic/setup")).json()["needs_setup"] is False

        again = await client.post(
            "/api/auth/basic/setup",
            json={"username": "root2", "email": "root2@example.com", "password": ADMIN_PASSWORD},
        )
        assert again.status_code == 400
        assert again.json()["error"] == "Initial setup has already been completed"

    @pytest.mark.asyncio
    async def test_setup_username_conflict(self, client, test_user):
        response = await client.post(
            "/api/auth/basic/setup",
            json={"username": "player1", "email": "root@example.com", "password": ADMIN_PASSWORD},
        )

        assert response.status_code == 409


@pytest.mark.integration
class TestPasswordManagement:
    """Test change-password and reset-password"""

    @pytest.mark.asyncio
    async def test_change_password(self, user_client, anonymous):
        response = await user_client.post(
            "/api/auth/basic/change-password",
            json={"current_password": USER_PASSWORD, "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 200
        assert (await basic_login(anonymous, "player1", USER_PASSWORD)).status_code == 401
        assert (await basic_login(anonymous, "player1", NEW_PASSWORD)).status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, user_client):
        response = await user_client.post(
            "/api/auth/basic/change-password",
            json={"current_password": "not-my-password", "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Current password is incorrect"

    @pytest.mark.asyncio
    async def test_change_password_anonymous(self, client):
        response = await client.post(
            "/api/auth/basic/change-password",
            json={"current_password": USER_PASSWORD, "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_resets_password(self, admin_client, test_user, anonymous):
        response = await admin_client.post(
            "/api/auth/basic/reset-password",
            json={"email": "player@example.com", "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 200
        assert (await basic_login(anonymous, "player1", NEW_PASSWORD)).status_code == 200

    @pytest.mark.asyncio
    async def test_reset_unknown_email(self, admin_client):
        response = await admin_client.post(
            "/api/auth/basic/reset-password",
            json={"email": "ghost@example.com", "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reset_requires_admin(self, user_client):
        """Bad input: regular users cannot reset passwords"""
        response = await user_client.post(
            "/api/auth/basic/reset-password",
            json={"email": "player@example.com", "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 403


@pytest.mark.integration
class TestSetupCheck:
    """Test POST /api/setup/check"""

    @pytest.mark.asyncio
    async def test_database_check_before_setup(self, client):
        """Happy path: anonymous access while no admin exists"""
        response = await client.post("/api/setup/check", json={"service": "database_connection"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["message"] == "Database connection successful"

    @pytest.mark.asyncio
    async def test_cache_check_memory_backend(self, client):
        """Edge case: in-memory cache reports a warning, not a failure"""
        response = await client.post("/api/setup/check", json={"service": "redis_cache"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "in-memory" in data["warning"]

    @pytest.mark.asyncio
    async def test_unknown_service(self, client):
        response = await client.post("/api/setup/check", json={"service": "smtp"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_anonymous_rejected_after_setup(self, client, test_admin):
        response = await client.post("/api/setup/check", json={"service": "database_connection"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_rejected_after_setup(self, test_admin, user_client):
        response = await user_client.post("/api/setup/check", json={"service": "database_connection"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_allowed_after_setup(self, admin_client):
        response = await admin_client.post("/api/setup/check", json={"service": "database_connection"})

        assert response.status_code == 200
        assert response.json()["success"] is True
