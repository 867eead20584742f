"""Account service orchestrating persistence, credentials, sessions and recovery."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from schemas import Avatar

from .account import Account
from .contracts import NewAccountRecord, ProfileUpdate, RegisterAccountInput, RoleUpdate
from .errors import AuthenticationError, NotFoundError, ValidationError
from ..config import Settings
from ..metrics import LOGINS, PASSWORD_RESETS
from ..repository import AccountRepository
from ..security.passwords import PasswordHasher
from ..security.tokens import SessionIssuer, SessionToken, generate_reset_token, hash_reset_token
from ..storage.avatars import UploadedAsset

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid Email or Password"
INVALID_RESET_TOKEN = "Reset Password Token is invalid or has been expired"
PASSWORD_MISMATCH = "Password does not match"
RESET_PATH = "/api/v1/password/reset/"
RESET_SUBJECT = "Storefront Password Recovery"


class Mailer(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


class AvatarUploader(Protocol):
    def upload(self, image: str, *, folder: str, width: int, crop: str) -> UploadedAsset: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_reset_url(base_url: str, raw_token: str) -> str:
    """Return ``<scheme>://<host>/api/v1/password/reset/<raw_token>``."""
    return f"{base_url.rstrip('/')}{RESET_PATH}{raw_token}"


def build_reset_message(reset_url: str) -> str:
    return (
        f"Your password reset token is :-\n\n{reset_url}\n\n"
        "If you have not requested this email then, please ignore it."
    )


class AccountService:
    """Request-scoped account workflows.

    Every collaborator is injected; the service holds no mutable state of its
    own, so one instance is shared by all concurrent requests.
    """

    def __init__(
        self,
        repository: AccountRepository,
        *,
        hasher: PasswordHasher,
        sessions: SessionIssuer,
        mailer: Mailer,
        uploader: AvatarUploader,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._hasher = hasher
        self._sessions = sessions
        self._mailer = mailer
        self._uploader = uploader
        self._settings = settings
        self._clock = clock

    def register(self, payload: RegisterAccountInput) -> tuple[Account, SessionToken]:
        """Upload the avatar, create the account, and open a session for it.

        The upload completes before the account row is written so the stored
        avatar reference always points at an existing asset.
        """
        asset = self._uploader.upload(
            payload.avatar_image,
            folder=self._settings.avatar_folder,
            width=self._settings.avatar_width,
            crop=self._settings.avatar_crop,
        )
        account = self._repository.create_account(
            NewAccountRecord(
                name=payload.name,
                email=payload.email,
                password_hash=self._hasher.hash(payload.password),
                avatar=Avatar(asset_id=asset.asset_id, url=asset.url),
            )
        )
        logger.info("account %s registered", account.account_id)
        return account, self._sessions.issue(account.account_id)

    def login(self, email: str | None, password: str | None) -> tuple[Account, SessionToken]:
        """Authenticate by email and password.

        Unknown email and wrong password raise the same
        :class:`AuthenticationError` after the same amount of hashing work.
        """
        if not email or not password:
            raise ValidationError("Please Enter Email & Password")

        account = self._repository.find_by_email(email)
        if account is None:
            self._hasher.verify_dummy(password)
            LOGINS.labels(outcome="rejected").inc()
            logger.info("login rejected")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not self._hasher.verify(password, account.password_hash):
            LOGINS.labels(outcome="rejected").inc()
            logger.info("login rejected")
            raise AuthenticationError(INVALID_CREDENTIALS)

        LOGINS.labels(outcome="accepted").inc()
        return account, self._sessions.issue(account.account_id)

    def get_account(self, account_id: str) -> Account:
        """Return an account by identifier or raise :class:`NotFoundError`."""
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"User does not exist with Id: {account_id}")
        return account

    def request_password_reset(self, email: str, base_url: str) -> Account:
        """Store a fresh reset token for ``email`` and mail its recovery link.

        Parameters
        ----------
        email:
            Address of the account requesting recovery.
        base_url:
            ``<scheme>://<host>`` of the incoming request; ``PUBLIC_BASE_URL``
            takes precedence when configured.

        If delivery fails, both reset fields are cleared and persisted before
        the delivery error propagates, so no live token exists that
        the user was never told about.
        """
        account = self._repository.find_by_email(email)
        if account is None:
            raise NotFoundError("User not found")

        raw_token, token_hash = generate_reset_token()
        expires_at = self._clock() + timedelta(seconds=self._settings.reset_token_ttl_seconds)
        account = self._repository.update_account(
            account.account_id,
            {"reset_token": token_hash, "reset_token_expires_at": expires_at},
        )
        PASSWORD_RESETS.labels(stage="requested").inc()

        reset_url = build_reset_url(self._settings.public_base_url or base_url, raw_token)
        try:
            self._mailer.send(account.email, RESET_SUBJECT, build_reset_message(reset_url))
        except Exception:
            logger.warning(
                "reset email for account %s not delivered; clearing reset token",
                account.account_id,
            )
            self._repository.update_account(
                account.account_id,
                {"reset_token": None, "reset_token_expires_at": None},
            )
            PASSWORD_RESETS.labels(stage="rolled_back").inc()
            raise

        logger.info("reset token issued for account %s, expires %s", account.account_id, expires_at.isoformat())
        return account

    def reset_password(
        self, raw_token: str, password: str, confirm_password: str
    ) -> tuple[Account, SessionToken]:
        """Consume a reset token, set the new password, and open a session.

        Expired and unknown tokens are rejected with the same message.
        """
        account = self._repository.find_by_reset_token(hash_reset_token(raw_token), self._clock())
        if account is None:
            PASSWORD_RESETS.labels(stage="rejected").inc()
            raise AuthenticationError(INVALID_RESET_TOKEN)
        if password != confirm_password:
            raise ValidationError(PASSWORD_MISMATCH)

        account = self._repository.update_account(
            account.account_id,
            {
                "password_hash": self._hasher.hash(password),
                "reset_token": None,
                "reset_token_expires_at": None,
            },
        )
        PASSWORD_RESETS.labels(stage="completed").inc()
        logger.info("password reset completed for account %s", account.account_id)
        return account, self._sessions.issue(account.account_id)

    def change_password(
        self,
        account_id: str,
        old_password: str,
        new_password: str,
        confirm_password: str,
    ) -> tuple[Account, SessionToken]:
        """Replace the password after verifying the current one; rotates the session."""
        account = self.get_account(account_id)
        if not self._hasher.verify(old_password, account.password_hash):
            raise AuthenticationError("Old password is incorrect")
        if new_password != confirm_password:
            raise ValidationError(PASSWORD_MISMATCH)

        account = self._repository.update_account(
            account.account_id, {"password_hash": self._hasher.hash(new_password)}
        )
        logger.info("password changed for account %s", account.account_id)
        return account, self._sessions.issue(account.account_id)

    def update_profile(self, account_id: str, update: ProfileUpdate) -> Account:
        """Change name and email. Avatar replacement is not supported yet."""
        return self._repository.update_account(account_id, update.changes())

    def list_accounts(self) -> list[Account]:
        return self._repository.list_accounts()

    def update_role(self, account_id: str, update: RoleUpdate) -> Account:
        """Administrative update of name, email and role."""
        account = self._repository.update_account(account_id, update.changes())
        logger.info("account %s updated by admin, role=%s", account_id, account.role.value)
        return account

    def delete_account(self, account_id: str) -> None:
        """Delete an account once its existence is confirmed."""
        account = self.get_account(account_id)
        self._repository.delete_account(account.account_id)
        logger.info("account %s deleted", account_id)
