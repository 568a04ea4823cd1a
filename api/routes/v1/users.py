"""
api/routes/v1/users.py -- Account management, login and token refresh endpoints.

Routes:
  POST   /users                -- register (public); 201 {id}
  GET    /users                -- list all users (authenticated)
  GET    /users/me             -- current user (authenticated)
  PUT    /users/me             -- update own profile (authenticated)
  DELETE /users/me             -- delete own account (authenticated)
  POST   /users/login          -- {email, password} -> {accessToken, refreshToken}
  POST   /users/refreshTokens  -- {currentRefreshToken} -> new pair
  GET    /users/{user_id}      -- read any user (admin only)
  PUT    /users/{user_id}      -- update any user, including role (admin only)
  DELETE /users/{user_id}      -- delete any user (admin only)

The router is built by create_users_router(strategy): the same routes serve
either the bearer or the basic scheme, chosen once at application assembly.

Security:
  [H2] login and refreshTokens are rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] Login goes through auth.rotation.login() -> check_credentials(), which
       equalizes timing between unknown email and wrong password.
  [M5] Cache-Control: no-store on every response that carries tokens.
  Role changes are admin-only: UserSelfUpdate has no role field and rejects
  unknown keys, so PUT /users/me cannot escalate privileges.

/users/me is registered before /users/{user_id} so "me" is never captured as
an id.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import (
    CreatedResponse,
    IdentityResponse,
    LoginRequest,
    RefreshRequest,
    TokenPairResponse,
    UserAdminUpdate,
    UserCreate,
    UserLookupResponse,
    UserResponse,
    UserSelfUpdate,
)
from auth.credentials import hash_password
from auth.dependencies import AuthStrategy, require_admin
from auth.errors import BadRequest, Conflict, NotFound, Unauthorized
from auth.models import Identity, TokenPair, User
from auth.rotation import login, rotate
from auth.store import UserStore, run_store
from core.config import get_settings

logger = logging.getLogger("usersapi.api.users")

_settings = get_settings()


def create_users_router(strategy: AuthStrategy) -> APIRouter:
    """Build the /users router with every protected route gated by strategy."""
    router = APIRouter()
    admin_only = require_admin(strategy)

    # -----------------------------------------------------------------------
    # Public endpoints
    # -----------------------------------------------------------------------

    @router.post("/users", response_model=CreatedResponse, status_code=201)
    async def create_user(request: Request, body: UserCreate) -> CreatedResponse:
        """Register a new account. The role is always "user"."""
        store: UserStore = request.app.state.user_store
        new_user = User(
            email=body.email,
            hashed_password=await run_in_threadpool(hash_password, body.password),
            first_name=body.first_name,
            last_name=body.last_name,
        )
        try:
            created = await run_store(store.create_user, new_user)
        except IntegrityError as exc:
            raise Conflict("A user with that email already exists.") from exc
        logger.info("User %s registered", created.id)
        return CreatedResponse(id=created.id)

    @limiter.limit(_settings.login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
    @router.post("/users/login", response_model=TokenPairResponse)
    async def login_user(request: Request, response: Response, body: LoginRequest) -> TokenPairResponse:
        """Exchange email and password for a new token pair.

        Any previously issued refresh token for this user stops working.
        """
        pair = await login(request.app.state.user_store, body.email, body.password)
        response.headers["Cache-Control"] = "no-store"  # [M5]
        return _pair_to_response(pair)

    @limiter.limit(_settings.login_rate_limit)  # [H2]
    @router.post("/users/refreshTokens", response_model=TokenPairResponse)
    async def refresh_tokens(request: Request, response: Response, body: RefreshRequest) -> TokenPairResponse:
        """Rotate a refresh token. The presented token is consumed on success.

        Every client-side failure returns the same 401 body; see auth.rotation.
        """
        pair = await rotate(request.app.state.user_store, body.current_refresh_token)
        response.headers["Cache-Control"] = "no-store"  # [M5]
        return _pair_to_response(pair)

    # -----------------------------------------------------------------------
    # Authenticated endpoints
    # -----------------------------------------------------------------------

    @router.get("/users", response_model=list[UserResponse])
    async def list_users(request: Request, identity: Identity = Depends(strategy)) -> list[UserResponse]:
        store: UserStore = request.app.state.user_store
        users = await run_store(store.list_users)
        return [UserResponse.from_user(u) for u in users]

    @router.get("/users/me", response_model=UserResponse)
    async def read_me(request: Request, identity: Identity = Depends(strategy)) -> UserResponse:
        """Return the caller's own record.

        A valid access token can outlive its user (tokens are not revoked on
        delete), so a missing record is an authentication failure, not a 404.
        """
        store: UserStore = request.app.state.user_store
        user = await run_store(store.get_by_id, identity.user_id)
        if user is None:
            raise Unauthorized(f"User with id {identity.user_id} not found!")
        return UserResponse.from_user(user)

    @router.put("/users/me", response_model=UserResponse)
    async def update_me(
        request: Request,
        body: UserSelfUpdate,
        identity: Identity = Depends(strategy),
    ) -> UserResponse:
        store: UserStore = request.app.state.user_store
        updated = await _apply_update(store, identity.user_id, body)
        return UserResponse.from_user(updated)

    @router.delete("/users/me", status_code=204)
    async def delete_me(request: Request, identity: Identity = Depends(strategy)) -> Response:
        """Delete the caller's account. Its refresh token goes with it."""
        store: UserStore = request.app.state.user_store
        await run_store(store.delete_user, identity.user_id)
        logger.info("User %s deleted own account", identity.user_id)
        return Response(status_code=204)

    # -----------------------------------------------------------------------
    # Admin endpoints
    # -----------------------------------------------------------------------

    @router.get("/users/{user_id}", response_model=UserLookupResponse)
    async def read_user(
        request: Request,
        user_id: str,
        identity: Identity = Depends(admin_only),
    ) -> UserLookupResponse:
        store: UserStore = request.app.state.user_store
        user = await run_store(store.get_by_id, user_id)
        if user is None:
            raise NotFound(f"User with id {user_id} not found!")
        return UserLookupResponse(
            current_requesting_user=IdentityResponse.from_identity(identity),
            user=UserResponse.from_user(user),
        )

    @router.put("/users/{user_id}", response_model=UserResponse)
    async def update_user(
        request: Request,
        user_id: str,
        body: UserAdminUpdate,
        identity: Identity = Depends(admin_only),
    ) -> UserResponse:
        store: UserStore = request.app.state.user_store
        updated = await _apply_update(store, user_id, body)
        logger.info("Admin %s updated user %s", identity.user_id, user_id)
        return UserResponse.from_user(updated)

    @router.delete("/users/{user_id}", status_code=204)
    async def delete_user(
        request: Request,
        user_id: str,
        identity: Identity = Depends(admin_only),
    ) -> Response:
        """Delete any user. Deleting an id that no longer exists is a 404."""
        store: UserStore = request.app.state.user_store
        deleted = await run_store(store.delete_user, user_id)
        if not deleted:
            raise NotFound(f"User with id {user_id} not found!")
        logger.info("Admin %s deleted user %s", identity.user_id, user_id)
        return Response(status_code=204)

    return router


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pair_to_response(pair: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


async def _apply_update(store: UserStore, user_id: str, body: UserSelfUpdate) -> User:
    """Translate an update body into store fields and write them.

    Only fields the client actually sent are written. A new password is hashed
    before it reaches the store.
    """
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequest("No fields to update.")
    if "password" in changes:
        changes["hashed_password"] = await run_in_threadpool(hash_password, changes.pop("password"))
    if "role" in changes:
        changes["role"] = changes["role"].value

    try:
        updated = await run_store(store.update_user, user_id, **changes)
    except IntegrityError as exc:
        raise Conflict("A user with that email already exists.") from exc
    if updated is None:
        raise NotFound(f"User with id {user_id} not found!")
    return updated
