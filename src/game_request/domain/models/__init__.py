"""Domain models for the GameRequest service"""

from game_request.domain.models.api import (
    MAX_BATCH_GAME_IDS,
    CacheInvalidateRequest,
    ChangePasswordRequest,
    InitialAdminRequest,
    LoginRequest,
    PasswordResetRequest,
    ProviderSwitchRequest,
    RegisterRequest,
    SetupCheckRequest,
    SyncRequest,
    WatchlistBatchRequest,
    WatchlistRequest,
)
from game_request.domain.models.users import ExternalUserData, NormalizedUser

__all__ = [
    # User models
    "ExternalUserData",
    "NormalizedUser",
    # API models
    "LoginRequest",
    "RegisterRequest",
    "InitialAdminRequest",
    "ChangePasswordRequest",
    "PasswordResetRequest",
    "SetupCheckRequest",
    "ProviderSwitchRequest",
    "SyncRequest",
    "CacheInvalidateRequest",
    "WatchlistRequest",
    "WatchlistBatchRequest",
    "MAX_BATCH_GAME_IDS",
]
