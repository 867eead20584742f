from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from schemas import AccountProfile, Avatar, Role


@dataclass(slots=True)
class Account:
    """Aggregate root for a storefront user identity.

    ``password_hash`` and the reset fields never leave the service boundary;
    use :meth:`to_profile` for anything returned to a client.
    """

    account_id: str
    name: str
    email: str
    password_hash: str
    created_at: datetime
    role: Role = Role.user
    avatar: Avatar | None = None
    reset_token: str | None = None
    reset_token_expires_at: datetime | None = None

    def to_profile(self) -> AccountProfile:
        """Project the aggregate onto the public account DTO."""
        return AccountProfile(
            account_id=self.account_id,
            name=self.name,
            email=self.email,
            role=self.role,
            avatar=self.avatar,
            created_at=self.created_at,
        )
