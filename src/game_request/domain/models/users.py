"""User Sync Data Models

Purpose: Normalized shape of a user record coming from an external system

External systems name their fields differently (id vs user_id vs sub,
name vs display_name, ...). Records are normalized into NormalizedUser before
they reach the database.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ExternalUserData(BaseModel):
    """Original fields kept for reference on the user row"""

    username: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class NormalizedUser(BaseModel):
    """User record from any provider, in one shape

    Attributes:
        external_id: Subject in the external system
        email: Email address (lowercased)
        name: Display name, may be empty
        avatar: Avatar URL
        is_active: False when the external system marks the user inactive
        provider: Provider kind the record came from
        external_data: Original username, roles, groups and metadata
    """

    external_id: str
    email: str
    name: str = ""
    avatar: Optional[str] = None
    is_active: bool = True
    provider: str
    external_data: ExternalUserData = Field(default_factory=ExternalUserData)

    @property
    def roles(self) -> list[str]:
        return self.external_data.roles
