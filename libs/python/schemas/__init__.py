"""Shared schema exports."""

from .account import AccountProfile, Avatar, Role

__all__ = [
    "AccountProfile",
    "Avatar",
    "Role",
]
