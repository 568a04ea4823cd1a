"""Unit tests for auth/tokens.py -- the access/refresh token codec.

Covers:
- Access and refresh tokens verify with their own secret and carry the right claims
- Expired tokens fail verification even though the signature is correct
- A token signed with another key fails verification
- Token classes are not interchangeable (refresh as access and vice versa)
- Two tokens minted back to back for the same user differ (jti)
- A missing signing secret raises SigningError
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import InvalidTokenError, SigningError
from auth.tokens import issue_access_token, issue_refresh_token, verify_access_token, verify_refresh_token
from core.config import get_settings


@pytest.mark.asyncio
async def test_access_token_round_trip_claims() -> None:
    token = await issue_access_token("u1", "admin")
    payload = await verify_access_token(token)
    assert payload["sub"] == "u1"
    assert payload["role"] == "admin"
    assert payload["type"] == "access"


@pytest.mark.asyncio
async def test_access_token_lifetime_is_fifteen_minutes() -> None:
    token = await issue_access_token("u1", "user")
    payload = await verify_access_token(token)
    assert payload["exp"] - payload["iat"] == 15 * 60


@pytest.mark.asyncio
async def test_refresh_token_lifetime_is_one_week() -> None:
    token = await issue_refresh_token("u1")
    payload = await verify_refresh_token(token)
    assert payload["sub"] == "u1"
    assert "role" not in payload
    assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60


@pytest.mark.asyncio
async def test_expired_access_token_rejected() -> None:
    """An access token older than its TTL fails even with a correct signature."""
    token = await issue_access_token("u1", "user", expires_in=timedelta(seconds=-1))
    with pytest.raises(InvalidTokenError):
        await verify_access_token(token)


@pytest.mark.asyncio
async def test_expired_refresh_token_rejected() -> None:
    token = await issue_refresh_token("u1", expires_in=timedelta(seconds=-1))
    with pytest.raises(InvalidTokenError):
        await verify_refresh_token(token)


@pytest.mark.asyncio
async def test_forged_signature_rejected() -> None:
    now = datetime.now(timezone.utc)
    forged = jwt.encode(
        {"sub": "u1", "role": "admin", "type": "access", "iat": now, "exp": now + timedelta(minutes=5)},
        "x" * 64,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        await verify_access_token(forged)


@pytest.mark.asyncio
@pytest.mark.parametrize("garbage", ["garbage-token", "", "a.b.c"])
async def test_garbage_rejected(garbage: str) -> None:
    with pytest.raises(InvalidTokenError):
        await verify_refresh_token(garbage)


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token() -> None:
    refresh = await issue_refresh_token("u1")
    with pytest.raises(InvalidTokenError):
        await verify_access_token(refresh)


@pytest.mark.asyncio
async def test_access_token_is_not_a_refresh_token() -> None:
    access = await issue_access_token("u1", "user")
    with pytest.raises(InvalidTokenError):
        await verify_refresh_token(access)


@pytest.mark.asyncio
async def test_back_to_back_tokens_differ() -> None:
    first = await issue_refresh_token("u1")
    second = await issue_refresh_token("u1")
    assert first != second


@pytest.mark.asyncio
async def test_missing_secret_raises_signing_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "jwt_secret", "")
    with pytest.raises(SigningError):
        await issue_access_token("u1", "user")
