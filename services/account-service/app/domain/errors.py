"""Error taxonomy surfaced by account workflows.

Every error carries the user-facing ``message`` and the HTTP ``status_code``
the API layer renders it with. Authentication failures use fixed messages so
responses never reveal which credential factor was wrong.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for failures raised by the account service."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(AccountError):
    """Missing or mismatched request fields, or a store-level constraint violation."""

    status_code = 400


class AuthenticationError(AccountError):
    """Wrong credentials, or an invalid, expired or unknown token."""

    status_code = 401


class PermissionDeniedError(AccountError):
    """Authenticated account lacks the role required by a route."""

    status_code = 403


class NotFoundError(AccountError):
    """Referenced account does not exist."""

    status_code = 404


class InfrastructureError(AccountError):
    """A collaborator (store, mail, asset storage) failed."""

    status_code = 500


class NotificationError(InfrastructureError):
    """Outbound email could not be delivered."""


class AssetUploadError(InfrastructureError):
    """Avatar image could not be uploaded to asset storage."""
