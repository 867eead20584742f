"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, EmailStr


class Role(str, Enum):
    user = "user"
    admin = "admin"


class Avatar(BaseModel):
    """Reference to an avatar image held in external asset storage."""

    asset_id: str
    url: str


class AccountProfile(BaseModel):
    """Public projection of a storefront account (no credential material)."""

    model_config = ConfigDict(use_enum_values=True)

    account_id: str
    name: str
    email: EmailStr
    role: Role = Role.user
    avatar: Avatar | None = None
    created_at: datetime
