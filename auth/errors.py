"""
auth/errors.py -- Error taxonomy for the auth package.

Every failure that can reach a client is an AuthError carrying its HTTP status,
a machine-readable code and a client-safe message. api/main.py registers one
exception handler for the whole hierarchy, so route and dependency code raise
these directly instead of building HTTPException payloads by hand.

InvalidTokenError is NOT an AuthError: it is a codec-level signal
and must be translated by the caller (bearer gate -> Unauthorized, rotation ->
the uniform refresh rejection). Letting it escape would leak why a token failed.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors surfaced to HTTP clients."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class BadRequest(AuthError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request."


class Unauthorized(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Admin access required."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class SigningError(AuthError):
    """The token signer rejected the request (missing secret, bad key)."""

    default_message = "Token service unavailable."


class StoreError(AuthError):
    """The user store failed. Never retried automatically."""

    default_message = "User store unavailable."


class InvalidTokenError(Exception):
    """A token failed signature, expiry, or claim checks."""
