"""
auth/credentials.py -- Password hashing and the credential verifier.

Passwords: bcrypt, used directly (no passlib wrapper). bcrypt's cost factor
makes brute force expensive and bcrypt.checkpw compares in constant time.

check_credentials() fails closed: unknown email and wrong password both return
None, never raise, and take the same time [C1]. Callers cannot tell the two
apart, which is the point -- it prevents user enumeration.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import bcrypt

from auth.store import run_store

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps password length
    at 255 characters; anything beyond 72 bytes is truncated here explicitly
    because bcrypt 4.x raises on longer input.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("usersapi_timing_dummy")


def _check(store: UserStore, email: str, password: str) -> User | None:
    user = store.get_by_email(email)
    if user is None:
        # Do NOT return before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def check_credentials(store: UserStore, email: str, password: str) -> User | None:
    """Return the matching User, or None for a wrong email or wrong password.

    Store lookup and bcrypt both block, so the whole check runs in the threadpool.
    Engine failures surface as StoreError.
    """
    if not email or not password:
        return None
    return await run_store(_check, store, email.strip().lower(), password)
