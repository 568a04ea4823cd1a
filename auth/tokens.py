"""
auth/tokens.py -- Signed, time-limited JWTs for the access/refresh pair.

Security design decisions:
  Two token classes, two secrets. Access tokens are signed with JWT_SECRET,
       refresh tokens with REFRESH_TOKEN_SECRET. Compromising one key does not
       let an attacker forge the other class. A "type" claim is also checked so
       a refresh token can never be replayed as a bearer credential even if an
       operator misconfigures both secrets to the same value.

  Lifetimes. Access tokens live 15 minutes (bounds the exposure window of a
       stolen bearer token); refresh tokens live one week and are additionally
       revocable server-side because rotation overwrites the stored copy.

  jti. Every token carries a random jti so two tokens minted for the same user
       within the same second are still distinct strings. Rotation depends on
       this: the new refresh token must differ from the one it replaces.

  Async. python-jose is synchronous; signing and verification run in
       Starlette's threadpool so callers see a plain await instead of blocking
       the event loop.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import JOSEError
from starlette.concurrency import run_in_threadpool

from auth.errors import InvalidTokenError, SigningError
from core.config import get_settings

logger = logging.getLogger("usersapi.auth.tokens")

_ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


# ---------------------------------------------------------------------------
# Sync primitives (run in the threadpool by the async API below)
# ---------------------------------------------------------------------------


def _encode(claims: dict, secret: str, lifetime: timedelta) -> str:
    if not secret:
        raise SigningError("Token signing secret is not configured.")
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": now,
        "exp": now + lifetime,
        "jti": secrets.token_hex(16),
    }
    try:
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)
    except JOSEError as exc:
        logger.error("JWT signing failed: %s", exc)
        raise SigningError() from exc


def _decode(token: str, secret: str, token_type: str) -> dict:
    if not isinstance(token, str) or not token:
        raise InvalidTokenError("empty token")
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc
    if payload.get("type") != token_type:
        raise InvalidTokenError(f"expected a {token_type} token")
    if not payload.get("sub"):
        raise InvalidTokenError("missing subject")
    if token_type == ACCESS_TOKEN_TYPE and not payload.get("role"):
        raise InvalidTokenError("missing role")
    return payload


# ---------------------------------------------------------------------------
# Public async API
# ---------------------------------------------------------------------------


async def issue_access_token(user_id: str, role: str, expires_in: timedelta | None = None) -> str:
    """Sign an access token carrying {sub: user_id, role}.

    Args:
        user_id:    Store id of the user (becomes the "sub" claim).
        role:       "user" or "admin".
        expires_in: Overrides ACCESS_TOKEN_TTL_SECONDS when given.

    Raises:
        SigningError: the secret is missing or the signer rejected the payload.
    """
    settings = get_settings()
    lifetime = expires_in if expires_in is not None else timedelta(seconds=settings.access_token_ttl_seconds)
    claims = {"sub": user_id, "role": role, "type": ACCESS_TOKEN_TYPE}
    return await run_in_threadpool(_encode, claims, settings.jwt_secret, lifetime)


async def issue_refresh_token(user_id: str, expires_in: timedelta | None = None) -> str:
    """Sign a refresh token carrying {sub: user_id}. See issue_access_token()."""
    settings = get_settings()
    lifetime = expires_in if expires_in is not None else timedelta(seconds=settings.refresh_token_ttl_seconds)
    claims = {"sub": user_id, "type": REFRESH_TOKEN_TYPE}
    return await run_in_threadpool(_encode, claims, settings.refresh_token_secret, lifetime)


async def verify_access_token(token: str) -> dict:
    """Return the verified payload of an access token.

    Raises InvalidTokenError on a bad signature, expiry, or wrong token type.
    """
    return await run_in_threadpool(_decode, token, get_settings().jwt_secret, ACCESS_TOKEN_TYPE)


async def verify_refresh_token(token: str) -> dict:
    """Return the verified payload of a refresh token. Same contract as verify_access_token()."""
    return await run_in_threadpool(_decode, token, get_settings().refresh_token_secret, REFRESH_TOKEN_TYPE)
