"""Domain-level request contracts shared by multiple layers.

Update contracts are explicit allow-lists: the repository only ever receives
the columns listed by :meth:`changes`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from schemas import Avatar, Role


@dataclass(slots=True)
class RegisterAccountInput:
    """Validated inputs required to register a storefront account."""

    name: str
    email: str
    password: str
    avatar_image: str


@dataclass(slots=True)
class NewAccountRecord:
    """Fields persisted when an account row is first created."""

    name: str
    email: str
    password_hash: str
    avatar: Avatar | None
    role: Role = Role.user


@dataclass(slots=True)
class ProfileUpdate:
    """Self-service profile changes."""

    name: str
    email: str

    def changes(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email}


@dataclass(slots=True)
class RoleUpdate:
    """Administrative changes to another account."""

    name: str
    email: str
    role: Role

    def changes(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "role": self.role}
