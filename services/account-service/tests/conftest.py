from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from schemas import Role

from app.api import routes
from app.api.errors import register_exception_handlers
from app.config import Settings, get_settings
from app.domain.account import Account
from app.domain.contracts import NewAccountRecord
from app.domain.errors import AssetUploadError, NotFoundError, NotificationError, ValidationError
from app.domain.service import AccountService
from app.repository import UPDATABLE_COLUMNS, normalise_email
from app.security.passwords import PasswordHasher
from app.security.tokens import SessionIssuer
from app.storage.avatars import UploadedAsset


class FakeRepository:
    """In-memory repository mimicking Postgres-backed behaviors."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self.writes: list[dict[str, Any]] = []

    def _copy(self, account: Account | None) -> Account | None:
        return dataclasses.replace(account) if account else None

    def _ensure_unique_email(self, email: str, account_id: str | None = None) -> None:
        for existing in self._accounts.values():
            if existing.email == email and existing.account_id != account_id:
                raise ValidationError("Duplicate email entered")

    def find_by_id(self, account_id: str) -> Account | None:
        return self._copy(self._accounts.get(account_id))

    def find_by_email(self, email: str) -> Account | None:
        email = normalise_email(email)
        for account in self._accounts.values():
            if account.email == email:
                return self._copy(account)
        return None

    def find_by_reset_token(self, token_hash: str, now: datetime) -> Account | None:
        for account in self._accounts.values():
            if (
                account.reset_token == token_hash
                and account.reset_token_expires_at is not None
                and account.reset_token_expires_at > now
            ):
                return self._copy(account)
        return None

    def list_accounts(self) -> list[Account]:
        return [self._copy(account) for account in self._accounts.values()]

    def create_account(self, record: NewAccountRecord) -> Account:
        email = normalise_email(record.email)
        self._ensure_unique_email(email)
        account = Account(
            account_id=str(uuid.uuid4()),
            name=record.name,
            email=email,
            password_hash=record.password_hash,
            role=Role(record.role),
            avatar=record.avatar,
            created_at=datetime.now(timezone.utc),
        )
        self._accounts[account.account_id] = account
        self.writes.append(dataclasses.asdict(record))
        return self._copy(account)

    def update_account(self, account_id: str, changes: Mapping[str, Any]) -> Account:
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"columns not updatable: {sorted(unknown)}")
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"User does not exist with Id: {account_id}")
        values = dict(changes)
        if "email" in values:
            values["email"] = normalise_email(values["email"])
            self._ensure_unique_email(values["email"], account_id)
        if "role" in values:
            values["role"] = Role(values["role"])
        if ("reset_token" in values) != ("reset_token_expires_at" in values):
            raise ValidationError("Account record failed validation")
        updated = dataclasses.replace(account, **values)
        self._accounts[account_id] = updated
        self.writes.append(dict(values))
        return self._copy(updated)

    def delete_account(self, account_id: str) -> None:
        if self._accounts.pop(account_id, None) is None:
            raise NotFoundError(f"User does not exist with Id: {account_id}")

    def stored(self, account_id: str) -> Account:
        return self._accounts[account_id]


class FakeMailer:
    """Captures outbound email; set ``fail`` to simulate a relay outage."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise NotificationError("SMTP relay refused connection")
        self.sent.append((recipient, subject, body))


class FakeUploader:
    def __init__(self) -> None:
        self.uploads: list[dict[str, Any]] = []
        self.fail = False

    def upload(self, image: str, *, folder: str, width: int, crop: str) -> UploadedAsset:
        if self.fail:
            raise AssetUploadError("avatar upload failed")
        self.uploads.append({"image": image, "folder": folder, "width": width, "crop": crop})
        asset_id = f"{folder}/{uuid.uuid4().hex[:12]}"
        return UploadedAsset(asset_id=asset_id, url=f"https://res.example.com/{asset_id}.png")


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def settings() -> Settings:
    return dataclasses.replace(
        get_settings(),
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        reset_token_ttl_seconds=900,
        cookie_secure=False,
        public_base_url="",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def sessions(settings: Settings) -> SessionIssuer:
    return SessionIssuer(settings)


@pytest.fixture
def service(repository, hasher, sessions, mailer, uploader, settings, clock) -> AccountService:
    return AccountService(
        repository,
        hasher=hasher,
        sessions=sessions,
        mailer=mailer,
        uploader=uploader,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def api_client(service: AccountService, sessions: SessionIssuer):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    register_exception_handlers(app)
    app.state.account_service = service
    app.state.session_issuer = sessions

    with TestClient(app) as client:
        yield client
