"""API Request Models

Purpose: Request bodies for the auth, setup, integrations, cache and watchlist endpoints

These models validate client input before it reaches the auth manager or the
database.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

MAX_BATCH_GAME_IDS = 100
USERNAME_PATTERN = r"^[a-zA-Z0-9_]{3,50}$"
MIN_PASSWORD_LENGTH = 8


class LoginRequest(BaseModel):
    """Credential login

    Local accounts accept a username or an email address in username.
    """

    username: str = Field(..., min_length=1, max_length=255, examples=["player1"])
    password: str = Field(..., min_length=1, max_length=1024)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v


class RegisterRequest(BaseModel):
    """Self-service local account registration"""

    username: str = Field(..., pattern=USERNAME_PATTERN, examples=["player1"])
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=1024)


class InitialAdminRequest(RegisterRequest):
    """First admin account of a fresh deployment"""


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=1024)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=1024)


class PasswordResetRequest(BaseModel):
    """Admin reset of a local account password"""

    email: EmailStr
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=1024)


class SetupCheckRequest(BaseModel):
    """Connectivity check of one backing service during setup"""

    service: Literal["database_connection", "redis_cache"]


class ProviderSwitchRequest(BaseModel):
    """Switch the active authentication provider"""

    provider: str = Field(..., description="Provider kind", examples=["oidc_generic"])
    config: dict[str, Any] = Field(default_factory=dict, description="Provider configuration fields")


class SyncRequest(BaseModel):
    """Trigger a user sync"""

    action: Literal["sync_user", "sync_all"]
    user_id: Optional[str] = Field(None, description="External user id (sync_user only)")


class CacheInvalidateRequest(BaseModel):
    """Invalidate cache keys by name or glob pattern"""

    keys: list[str] = Field(default_factory=list)
    pattern: Optional[str] = None


class WatchlistRequest(BaseModel):
    game_id: str = Field(..., min_length=1, max_length=64)

    @field_validator("game_id", mode="before")
    @classmethod
    def coerce_game_id(cls, v):
        return str(v).strip() if v is not None else v


class WatchlistBatchRequest(BaseModel):
    """Watchlist status for many games at once"""

    game_ids: list[str] = Field(..., min_length=1, max_length=MAX_BATCH_GAME_IDS)

    @field_validator("game_ids", mode="before")
    @classmethod
    def coerce_game_ids(cls, v):
        if isinstance(v, list):
            return [str(item).strip() for item in v]
        return v
