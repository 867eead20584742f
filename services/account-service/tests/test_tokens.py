from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Response

from app.domain.errors import AuthenticationError
from app.security.tokens import SessionIssuer, generate_reset_token, hash_reset_token


def test_issue_embeds_account_and_expiry(settings):
    issuer = SessionIssuer(settings)
    token = issuer.issue("acct-1")

    claims = jwt.decode(token.value, settings.jwt_secret, algorithms=["HS256"], issuer=settings.jwt_issuer)
    assert claims["sub"] == "acct-1"
    assert claims["exp"] == int(token.expires_at.timestamp())
    assert claims["exp"] - claims["iat"] == settings.jwt_ttl_seconds
    assert issuer.decode(token.value) == "acct-1"


def test_decode_rejects_expired_token(settings):
    past = datetime.now(timezone.utc) - timedelta(seconds=settings.jwt_ttl_seconds + 60)
    issuer = SessionIssuer(settings, clock=lambda: past)
    token = issuer.issue("acct-1")

    with pytest.raises(AuthenticationError):
        SessionIssuer(settings).decode(token.value)


def test_decode_rejects_other_secret_and_issuer(settings):
    token = SessionIssuer(settings).issue("acct-1")

    with pytest.raises(AuthenticationError):
        SessionIssuer(dataclasses.replace(settings, jwt_secret="other-secret")).decode(token.value)
    with pytest.raises(AuthenticationError):
        SessionIssuer(dataclasses.replace(settings, jwt_issuer="someone.else")).decode(token.value)
    with pytest.raises(AuthenticationError):
        SessionIssuer(settings).decode("not-a-jwt")


def test_attach_writes_http_only_cookie(settings):
    issuer = SessionIssuer(settings)
    token = issuer.issue("acct-1")
    response = Response()

    issuer.attach(token, response)

    header = response.headers["set-cookie"]
    assert header.startswith(f"token={token.value}")
    assert "HttpOnly" in header
    assert "SameSite=lax" in header
    assert token.expires_at.strftime("%d %b %Y %H:%M:%S GMT") in header


def test_revoke_writes_expired_empty_cookie(settings):
    response = Response()
    SessionIssuer(settings).revoke(response)

    header = response.headers["set-cookie"]
    assert header.startswith("token=")
    assert "01 Jan 1970 00:00:00 GMT" in header
    assert "Max-Age=0" in header
    assert "HttpOnly" in header


def test_reset_token_pair():
    raw, hashed = generate_reset_token()
    assert len(raw) == 40
    assert hashed == hash_reset_token(raw)
    assert hashed != raw
    assert generate_reset_token()[0] != raw
