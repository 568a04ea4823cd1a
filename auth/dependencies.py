"""
auth/dependencies.py -- Authentication strategies and the admin gate.

Two interchangeable strategies implement one contract, AuthStrategy:

  BearerStrategy -- Authorization: Bearer <access token>. Verifies the JWT
                    only; no store lookup. Resolves Identity(user_id, role).
  BasicStrategy  -- Authorization: Basic base64(email:password). Runs the
                    credential verifier on every request. Resolves the full
                    user record.

A strategy instance is itself a FastAPI dependency: Depends(strategy) runs
authenticate(), stores the Identity on request.state.identity and hands it to
the route. The strategy is chosen once, when the router is built
(api.routes.v1.users.create_users_router), not per request.

require_admin(strategy) builds a dependency that itself depends on the
strategy, so the role check can never run before an identity is resolved.

Layer rule: may import from fastapi because this module is part of the
dependency injection system. No imports from api/.

Annotations stay evaluated (no __future__ import) for FastAPI introspection.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from fastapi import Depends, Request

from auth.credentials import check_credentials
from auth.errors import Forbidden, InvalidTokenError, Unauthorized
from auth.models import Identity
from auth.tokens import verify_access_token

logger = logging.getLogger("usersapi.auth")


def _authorization(request: Request, scheme: str) -> str | None:
    """Return the credentials part of 'Authorization: <scheme> <credentials>'."""
    header = request.headers.get("Authorization", "")
    prefix, _, credentials = header.partition(" ")
    if prefix.lower() != scheme.lower() or not credentials.strip():
        return None
    return credentials.strip()


class AuthStrategy(ABC):
    """Resolve the caller's Identity from a request or raise Unauthorized."""

    name: str = ""

    @abstractmethod
    async def authenticate(self, request: Request) -> Identity: ...

    async def __call__(self, request: Request) -> Identity:
        identity = await self.authenticate(request)
        request.state.identity = identity
        return identity


class BearerStrategy(AuthStrategy):
    name = "bearer"

    async def authenticate(self, request: Request) -> Identity:
        token = _authorization(request, "Bearer")
        if token is None:
            raise Unauthorized("Please provide a bearer token in the Authorization header.")
        try:
            payload = await verify_access_token(token)
        except InvalidTokenError as exc:
            logger.info("Bearer token rejected: %s", exc)
            raise Unauthorized("Token not valid!") from None
        return Identity(user_id=payload["sub"], role=payload["role"])


class BasicStrategy(AuthStrategy):
    name = "basic"

    _CHALLENGE = {"WWW-Authenticate": 'Basic realm="users"'}

    async def authenticate(self, request: Request) -> Identity:
        encoded = _authorization(request, "Basic")
        if encoded is None:
            raise Unauthorized("Please provide credentials in the Authorization header.", headers=self._CHALLENGE)
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise Unauthorized("Credentials are not ok!", headers=self._CHALLENGE) from None
        email, sep, password = decoded.partition(":")
        if not sep:
            raise Unauthorized("Credentials are not ok!", headers=self._CHALLENGE)

        user = await check_credentials(request.app.state.user_store, email, password)
        if user is None:
            raise Unauthorized("Credentials are not ok!", headers=self._CHALLENGE)
        return Identity(user_id=user.id, role=user.role, user=user)


_STRATEGIES: dict[str, type[AuthStrategy]] = {
    BearerStrategy.name: BearerStrategy,
    BasicStrategy.name: BasicStrategy,
}


def get_strategy(name: str) -> AuthStrategy:
    """Return a strategy instance by name ("bearer" or "basic")."""
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown auth scheme: {name!r}") from None


def require_admin(strategy: AuthStrategy) -> Callable[..., Awaitable[Identity]]:
    """Build an admin gate bound to strategy.

    Use as a FastAPI dependency:
        admin_only = require_admin(strategy)
        @router.delete("/users/{user_id}")
        async def route(identity: Identity = Depends(admin_only)): ...
    """

    async def admin_gate(identity: Identity = Depends(strategy)) -> Identity:
        if not identity.is_admin:
            raise Forbidden()
        return identity

    return admin_gate
