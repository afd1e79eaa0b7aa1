"""Integration tests for provider administration, sync and webhooks

Starts with the local provider and switches to the webhook integration
through the admin API.
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from game_request.core.auth.webhook import compute_signature

WEBHOOK_SECRET = "integration-webhook-secret-0123"
VERIFY_TOKEN = "hub-verify-token"


@pytest_asyncio.fixture
async def webhook_client(admin_client):
    """Admin client after switching the app to the webhook integration."""
    response = await admin_client.post(
        "/api/integrations/config",
        json={
            "provider": "webhook_integration",
            "config": {"secret": WEBHOOK_SECRET, "verify_token": VERIFY_TOKEN},
        },
    )
    assert response.status_code == 200
    return admin_client


async def post_event(client: AsyncClient, payload: dict, secret: str = WEBHOOK_SECRET, signature: str = None):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    signature = signature if signature is not None else compute_signature(secret, body)
    if signature:
        headers["X-Hub-Signature-256"] = signature
    return await client.post("/api/integrations/webhook", content=body, headers=headers)


@pytest.mark.integration
class TestProviderConfigEndpoints:
    """Test /api/integrations/config"""

    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, client):
        response = await client.get("/api/integrations/config")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, user_client):
        """Bad input: regular user on an admin endpoint"""
        response = await user_client.get("/api/integrations/config")

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_admin_reads_config(self, admin_client):
        """Happy path: current provider, validation and the provider list"""
        response = await admin_client.get("/api/integrations/config")

        assert response.status_code == 200
        data = response.json()
        assert data["current"]["provider"] == "local_auth"
        assert data["validation"]["valid"] is True
        assert len(data["providers"]) == 5

    @pytest.mark.asyncio
    async def test_invalid_switch_rejected(self, admin_client):
        """Bad input: invalid configuration returns every issue and changes nothing"""
        response = await admin_client.post(
            "/api/integrations/config",
            json={"provider": "api_integration", "config": {"base_url": "not-a-url", "timeout_seconds": 500}},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert len(data["validation"]["issues"]) == 3

        current = (await admin_client.get("/api/integrations/config")).json()["current"]
        assert current["provider"] == "local_auth"

    @pytest.mark.asyncio
    async def test_unknown_provider_rejected(self, admin_client):
        response = await admin_client.post("/api/integrations/config", json={"provider": "ldap"})

        assert response.status_code == 400
        assert "Unknown provider" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_switch_keeps_admin_logged_in(self, webhook_client):
        """Happy path: local sessions survive a switch via the fallback"""
        response = await webhook_client.get("/api/integrations/config")

        assert response.status_code == 200
        current = response.json()["current"]
        assert current["provider"] == "webhook_integration"
        assert current["config"]["secret"] == "***"
        assert current["local_fallback"] is True


@pytest.mark.integration
class TestSyncEndpoints:
    """Test /api/integrations/sync"""

    @pytest.mark.asyncio
    async def test_status(self, admin_client):
        response = await admin_client.get("/api/integrations/sync")

        assert response.status_code == 200
        assert response.json()["supports_sync"] is False
        assert response.json()["auto_sync"] is False

    @pytest.mark.asyncio
    async def test_sync_unsupported_by_local(self, admin_client):
        """Bad input: local provider cannot sync"""
        response = await admin_client.post("/api/integrations/sync", json={"action": "sync_all"})

        assert response.status_code == 400
        assert "does not support user sync" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_sync_user_requires_id(self, webhook_client):
        response = await webhook_client.post("/api/integrations/sync", json={"action": "sync_user"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_push_only_provider_returns_no_result(self, webhook_client):
        """Edge case: webhook provider syncs by push"""
        response = await webhook_client.post("/api/integrations/sync", json={"action": "sync_all"})

        assert response.status_code == 200
        assert response.json()["result"] is None

    @pytest.mark.asyncio
    async def test_unknown_action(self, admin_client):
        response = await admin_client.post("/api/integrations/sync", json={"action": "sync_everything"})

        assert response.status_code == 422


@pytest.mark.integration
class TestWebhookEndpoints:
    """Test /api/integrations/webhook"""

    @pytest.mark.asyncio
    async def test_webhook_rejected_for_local_provider(self, client):
        """Bad input: webhooks only accepted by the webhook integration"""
        response = await post_event(client, {"event": "user.created", "data": {}})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_signed_event_applied(self, webhook_client):
        """Happy path: signed user.created creates the user"""
        response = await post_event(
            webhook_client,
            {"event": "user.created", "data": {"id": "ext-1", "email": "ext1@example.com", "name": "Ext"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "created"
        assert data["user"]["external_id"] == "ext-1"

    @pytest.mark.asyncio
    async def test_missing_signature(self, webhook_client):
        """Bad input: unsigned event"""
        response = await post_event(webhook_client, {"event": "user.created", "data": {}}, signature="")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self, webhook_client):
        response = await post_event(
            webhook_client,
            {"event": "user.created", "data": {"id": "ext-2", "email": "ext2@example.com"}},
            secret="some-other-secret-0123456789",
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_event(self, webhook_client):
        response = await post_event(webhook_client, {"event": "user.teleported", "data": {}})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Unknown event type"}

    @pytest.mark.asyncio
    async def test_data_not_an_object(self, webhook_client):
        """Bad input: signed event whose data is a list"""
        response = await post_event(webhook_client, {"event": "user.deleted", "data": ["oops"]})

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_json(self, webhook_client):
        response = await webhook_client.post(
            "/api/integrations/webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_subscription_handshake(self, webhook_client, app):
        """Happy path: challenge echoed for the right verify token"""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as anonymous:
            ok = await anonymous.get(
                "/api/integrations/webhook",
                params={"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "12345"},
            )
            denied = await anonymous.get(
                "/api/integrations/webhook",
                params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "12345"},
            )

        assert ok.status_code == 200
        assert ok.text == "12345"
        assert denied.status_code == 403
