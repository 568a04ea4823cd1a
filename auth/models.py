"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, the rotation protocol and the routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass
class User:
    """A registered account.

    hashed_password is a bcrypt hash and never leaves the server.
    refresh_token holds the single outstanding refresh token for this user,
    or None when no session has been issued. Writing a new value invalidates
    the previous one.
    """

    email: str
    hashed_password: str
    role: str = ROLE_USER  # "user", "admin"
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    refresh_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The principal resolved by an auth strategy for the current request.

    The bearer strategy knows only the claims carried by the access token, so
    user is None there. The basic strategy loads the full record.
    """

    user_id: str
    role: str
    user: User | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
