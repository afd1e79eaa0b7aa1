"""Webhook integration provider.

An external system pushes user lifecycle events; this provider verifies the
HMAC-SHA256 signature and applies them to the local user table.

Payload:
    {"event": "user.created", "data": {...user...}}

Signature header value: "sha256=" + hex(HMAC-SHA256(secret, raw request body)).
"""

import hashlib
import hmac
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from game_request.domain.services.user_sync import UserSyncService

from .provider import AuthProvider, ProviderKind, UserSyncError, WebhookSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of a "sha256=<hex>" (or bare hex) signature."""
    if not secret or not signature:
        return False
    provided = signature.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, provided.lower())


def _external_id(data: dict) -> Optional[str]:
    value = data.get("id") or data.get("user_id")
    return str(value) if value is not None else None


class WebhookIntegrationProvider(AuthProvider):
    """Receives user events from an external system."""

    kind = ProviderKind.WEBHOOK_INTEGRATION

    def __init__(self, config: Mapping[str, Any], user_sync: UserSyncService):
        """Initialize webhook provider.

        Args:
            config: secret, validate_signature, optional verify_token
            user_sync: Applies events to the local user table
        """
        self.secret = config.get("secret")
        self.validate_signature = bool(config.get("validate_signature", True))
        self.verify_token = config.get("verify_token")
        self.user_sync = user_sync
        self._handlers: dict[str, Callable[[dict], Awaitable[dict]]] = {
            "user.created": self._handle_user_upsert,
            "user.updated": self._handle_user_upsert,
            "user.deleted": self._handle_user_deleted,
            "user.role_changed": self._handle_role_changed,
            "user.bulk_sync": self._handle_bulk_sync,
        }

    def verify_subscription(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        """Answer a subscription handshake. Returns the challenge to echo, or None."""
        if mode != "subscribe" or not self.verify_token or not token:
            return None
        if not hmac.compare_digest(token, self.verify_token):
            return None
        return challenge

    async def handle_webhook(
        self,
        payload: Dict[str, Any],
        signature: Optional[str] = None,
        raw_body: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        """Verify and apply one event.

        Args:
            payload: Parsed JSON body
            signature: Signature header value
            raw_body: Exact request bytes; the signature covers these

        Returns:
            {"success": bool, "action": ..., ...} or {"success": False, "error": ...}

        Raises:
            WebhookSignatureError: If signature validation is enabled and fails
        """
        if self.validate_signature:
            body = raw_body if raw_body is not None else json.dumps(payload, separators=(",", ":")).encode()
            if not verify_signature(self.secret, body, signature):
                logger.warning("Rejected webhook with missing or invalid signature")
                raise WebhookSignatureError("Invalid webhook signature")

        if not isinstance(payload, dict):
            return {"success": False, "error": "Webhook payload must be a JSON object"}

        event = payload.get("event") or payload.get("type")
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Ignoring webhook with unknown event type: {event}")
            return {"success": False, "error": "Unknown event type"}

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            logger.warning(f"Rejected webhook {event}: data is not an object")
            return {"success": False, "error": "Webhook data must be a JSON object"}

        try:
            return await handler(data)
        except UserSyncError as e:
            logger.error(f"Webhook {event} failed: {e}")
            return {"success": False, "error": str(e)}

    async def _handle_user_upsert(self, data: dict) -> dict:
        user, created = await self.user_sync.sync_user(data, self.kind.value)
        action = "created" if created else "updated"
        await self.user_sync.record_activity(
            f"webhook_user_{action}",
            "user",
            user.external_id,
            {"user_id": user.id, "email": user.email, "changes": data.get("changed_fields") or []},
        )
        return {
            "success": True,
            "action": action,
            "user": {"id": user.id, "external_id": user.external_id, "email": user.email},
        }

    async def _handle_user_deleted(self, data: dict) -> dict:
        external_id = _external_id(data)
        if external_id is None:
            raise UserSyncError("User data missing required ID field")

        user = await self.user_sync.deactivate(external_id)
        if user is None:
            return {"success": True, "action": "not_found", "user_id": external_id}

        await self.user_sync.record_activity(
            "webhook_user_deleted", "user", external_id, {"user_id": user.id, "soft_delete": True}
        )
        return {"success": True, "action": "deleted", "user": {"id": user.id, "external_id": external_id}}

    async def _handle_role_changed(self, data: dict) -> dict:
        external_id = _external_id(data)
        if external_id is None:
            raise UserSyncError("User data missing required ID field")

        roles = data.get("roles") or []
        assigned = await self.user_sync.set_roles(external_id, roles)
        if assigned is None:
            return {"success": False, "error": "User not found"}

        await self.user_sync.record_activity(
            "webhook_user_role_changed",
            "user",
            external_id,
            {"new_roles": roles, "old_roles": data.get("previous_roles")},
        )
        return {"success": True, "action": "role_changed", "user_id": external_id, "roles": assigned}

    async def _handle_bulk_sync(self, data: dict) -> dict:
        users = data.get("users") or []
        if not isinstance(users, list):
            raise UserSyncError("Bulk sync users must be a list")
        created = updated = errors = 0
        for user_data in users:
            try:
                _, was_created = await self.user_sync.sync_user(user_data, self.kind.value)
            except Exception as e:
                ref = _external_id(user_data) if isinstance(user_data, dict) else None
                logger.error(f"Failed to sync user {ref} from webhook: {e}")
                errors += 1
                continue
            if was_created:
                created += 1
            else:
                updated += 1

        stats = {"total": len(users), "created": created, "updated": updated, "errors": errors}
        await self.user_sync.record_activity("webhook_bulk_sync", "user", "system", stats)
        return {"success": True, "action": "bulk_sync", "stats": stats}
