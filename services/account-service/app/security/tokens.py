"""Session JWTs, the session cookie, and password-reset token utilities."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt
from fastapi import Response

from ..config import Settings
from ..domain.errors import AuthenticationError

_ALGORITHM = "HS256"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class SessionToken:
    """A signed session JWT together with its absolute expiry."""

    value: str
    expires_at: datetime


class SessionIssuer:
    """Mints signed session tokens and writes them to the response cookie."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        """Store the signing secret, issuer, TTL and cookie options."""
        self._secret = settings.jwt_secret
        self._issuer = settings.jwt_issuer
        self._ttl = timedelta(seconds=settings.jwt_ttl_seconds)
        self._cookie_name = settings.cookie_name
        self._cookie_secure = settings.cookie_secure
        self._clock = clock

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    def issue(self, account_id: str) -> SessionToken:
        """Create a signed JWT whose ``sub`` claim is ``account_id``.

        Parameters
        ----------
        account_id:
            Account identifier to embed in the token ``sub`` claim.

        Returns
        -------
        SessionToken
            The encoded JWT and the expiry baked into its ``exp`` claim.
        """
        # JWT timestamps have second resolution; keep expires_at equal to exp.
        now = self._clock().replace(microsecond=0)
        expires_at = now + self._ttl
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return SessionToken(jwt.encode(payload, self._secret, algorithm=_ALGORITHM), expires_at)

    def decode(self, value: str) -> str:
        """Verify a session JWT and return the account identifier it carries.

        Raises
        ------
        AuthenticationError
            When the signature, issuer or expiry checks fail.
        """
        try:
            claims = jwt.decode(
                value,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Json Web Token is invalid, Try again") from exc
        return str(claims["sub"])

    def attach(self, token: SessionToken, response: Response) -> None:
        """Write the token as an HttpOnly, SameSite cookie expiring with the token."""
        response.set_cookie(
            self._cookie_name,
            value=token.value,
            expires=token.expires_at,
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure,
        )

    def revoke(self, response: Response) -> None:
        """Overwrite the session cookie with an empty, already-expired value."""
        response.set_cookie(
            self._cookie_name,
            value="",
            expires=_EPOCH,
            max_age=0,
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure,
        )


def generate_reset_token() -> tuple[str, str]:
    """Generate a raw password-reset token and its SHA-256 hash."""
    token = secrets.token_hex(20)
    return token, hash_reset_token(token)


def hash_reset_token(token: str) -> str:
    """Return the SHA-256 hex digest for a reset token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
