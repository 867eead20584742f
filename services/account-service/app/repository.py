"""Database repository for storefront account data."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import psycopg
from psycopg import errors, sql
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from schemas import Avatar, Role

from .domain.account import Account
from .domain.contracts import NewAccountRecord
from .domain.errors import InfrastructureError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_COLUMNS = sql.SQL(
    "account_id, name, email, password_hash, role, avatar_asset_id, avatar_url, "
    "reset_token, reset_token_expires_at, created_at"
)

# Columns an update may touch; account_id, created_at and the avatar are fixed here.
UPDATABLE_COLUMNS = frozenset(
    {"name", "email", "role", "password_hash", "reset_token", "reset_token_expires_at"}
)


def normalise_email(email: str) -> str:
    return email.strip().lower()


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map driver failures onto the account error taxonomy."""
    try:
        yield
    except errors.UniqueViolation as exc:
        raise ValidationError("Duplicate email entered") from exc
    except errors.CheckViolation as exc:
        raise ValidationError("Account record failed validation") from exc
    except psycopg.Error as exc:
        logger.error("account store failure: %s", exc)
        raise InfrastructureError("Account store unavailable") from exc


class AccountRepository:
    """Postgres-backed account persistence.

    Each method runs a single statement in its own transaction; concurrent
    writers to the same row resolve as last-write-wins.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def _fetch_one(self, query: sql.Composable, params: tuple[Any, ...]) -> Account | None:
        with _translate_errors(), self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_by_id(self, account_id: str) -> Account | None:
        """Return the account with ``account_id`` or ``None``."""
        query = sql.SQL("SELECT {} FROM accounts WHERE account_id = %s").format(_COLUMNS)
        return self._fetch_one(query, (account_id,))

    def find_by_email(self, email: str) -> Account | None:
        """Return the account registered under ``email`` (case-insensitive) or ``None``."""
        query = sql.SQL("SELECT {} FROM accounts WHERE email = %s").format(_COLUMNS)
        return self._fetch_one(query, (normalise_email(email),))

    def find_by_reset_token(self, token_hash: str, now: datetime) -> Account | None:
        """Return the account holding ``token_hash`` whose reset window ends after ``now``."""
        query = sql.SQL(
            "SELECT {} FROM accounts WHERE reset_token = %s AND reset_token_expires_at > %s"
        ).format(_COLUMNS)
        return self._fetch_one(query, (token_hash, now))

    def list_accounts(self) -> list[Account]:
        """Return every account ordered by creation time."""
        query = sql.SQL("SELECT {} FROM accounts ORDER BY created_at, account_id").format(_COLUMNS)
        with _translate_errors(), self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query)
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def create_account(self, record: NewAccountRecord) -> Account:
        """Insert a new account row and return it."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        avatar = record.avatar
        query = sql.SQL(
            """
            INSERT INTO accounts (account_id, name, email, password_hash, role,
                                  avatar_asset_id, avatar_url, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {}
            """
        ).format(_COLUMNS)
        params = (
            account_id,
            record.name,
            normalise_email(record.email),
            record.password_hash,
            Role(record.role).value,
            avatar.asset_id if avatar else None,
            avatar.url if avatar else None,
            now,
            now,
        )
        with _translate_errors(), self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            conn.commit()
        return self._map_record(row)

    def update_account(self, account_id: str, changes: Mapping[str, Any]) -> Account:
        """Apply ``changes`` to an account and return the updated record.

        Raises
        ------
        NotFoundError
            When no account has ``account_id``.
        """
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"columns not updatable: {sorted(unknown)}")
        if not changes:
            account = self.find_by_id(account_id)
            if account is None:
                raise NotFoundError(f"User does not exist with Id: {account_id}")
            return account

        values = dict(changes)
        if "email" in values:
            values["email"] = normalise_email(values["email"])
        if "role" in values:
            values["role"] = Role(values["role"]).value

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        )
        query = sql.SQL(
            "UPDATE accounts SET {}, updated_at = NOW() WHERE account_id = %s RETURNING {}"
        ).format(assignments, _COLUMNS)
        with _translate_errors(), self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, (*values.values(), account_id))
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise NotFoundError(f"User does not exist with Id: {account_id}")
        return self._map_record(row)

    def delete_account(self, account_id: str) -> None:
        """Remove an account row."""
        with _translate_errors(), self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM accounts WHERE account_id = %s", (account_id,))
                deleted = cur.rowcount
            conn.commit()
        if not deleted:
            raise NotFoundError(f"User does not exist with Id: {account_id}")

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        avatar = Avatar(asset_id=row[5], url=row[6]) if row[5] else None
        return Account(
            account_id=row[0],
            name=row[1],
            email=row[2],
            password_hash=row[3],
            role=Role(row[4]),
            avatar=avatar,
            reset_token=row[7],
            reset_token_expires_at=row[8],
            created_at=row[9],
        )
