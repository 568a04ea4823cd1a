"""
auth/rotation.py -- Login and refresh-token rotation.

A refresh token's life:

    issued -> valid (unexpired AND equal to users.refresh_token)
           -> consumed (rotated, or superseded by a newer login/refresh)
           -> invalid

There is no separate "revoked" state. Deleting the user is the only hard
revocation.

issue_pair() is the atomic unit: mint access, mint refresh, persist refresh.
A minted refresh token that fails to persist is never returned -- the error
propagates and the token is dropped.

rotate() rejects every client-side failure (bad signature, expired, unknown
user, mismatch, lost race) with the same Unauthorized message so a caller
cannot tell an expired token from a stolen/replayed one. Store and signer
failures are NOT folded into that 401: they surface as 5xx.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hmac
import logging

from auth.credentials import check_credentials
from auth.errors import InvalidTokenError, Unauthorized
from auth.models import TokenPair, User
from auth.store import UserStore, run_store
from auth.tokens import issue_access_token, issue_refresh_token, verify_refresh_token

logger = logging.getLogger("usersapi.auth.rotation")

CREDENTIALS_REJECTED = "Credentials are not ok!"
REFRESH_REJECTED = "Refresh Token not valid!"


async def issue_pair(store: UserStore, user: User, replacing: str | None = None) -> TokenPair:
    """Mint a new access/refresh pair for user and persist the refresh token.

    Args:
        store:     The user repository.
        user:      The user to issue for. Only id and role are read.
        replacing: The refresh token being rotated out. When given, the write
                   is a compare-and-swap and fails if another request has
                   already replaced it.

    Raises:
        Unauthorized: the user vanished, or the swap lost a race.
        SigningError / StoreError: infrastructure failure.
    """
    access_token = await issue_access_token(user.id, user.role)
    refresh_token = await issue_refresh_token(user.id)

    if replacing is None:
        updated = await run_store(store.update_user, user.id, refresh_token=refresh_token)
    else:
        updated = await run_store(store.swap_refresh_token, user.id, replacing, refresh_token)

    if updated is None:
        logger.info("Token pair for user %s discarded: stored refresh token changed or user deleted", user.id)
        raise Unauthorized(REFRESH_REJECTED if replacing is not None else CREDENTIALS_REJECTED)
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


async def login(store: UserStore, email: str, password: str) -> TokenPair:
    """Verify credentials and issue a fresh pair, superseding any prior refresh token."""
    user = await check_credentials(store, email, password)
    if user is None:
        raise Unauthorized(CREDENTIALS_REJECTED)
    return await issue_pair(store, user)


async def rotate(store: UserStore, current_refresh_token: str) -> TokenPair:
    """Exchange a valid, current refresh token for a new pair.

    The presented token is consumed: after a successful call it no longer
    matches the stored value and any further use is rejected.
    """
    try:
        payload = await verify_refresh_token(current_refresh_token)
    except InvalidTokenError as exc:
        logger.info("Refresh rejected: %s", exc)
        raise Unauthorized(REFRESH_REJECTED) from None

    user_id = payload["sub"]
    user = await run_store(store.get_by_id, user_id)
    if user is None:
        logger.info("Refresh rejected: user %s not found", user_id)
        raise Unauthorized(REFRESH_REJECTED)

    stored = user.refresh_token or ""
    if not stored or not hmac.compare_digest(stored.encode("utf-8"), current_refresh_token.encode("utf-8")):
        logger.info("Refresh rejected: token for user %s is not the current one", user_id)
        raise Unauthorized(REFRESH_REJECTED)

    return await issue_pair(store, user, replacing=current_refresh_token)
