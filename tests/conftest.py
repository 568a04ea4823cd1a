"""
tests/conftest.py -- Shared test fixtures for the Users API.

This module provides:
  - store: a fresh file-backed UserStore per test (unit tests)
  - make_user: factory that inserts a user with a known password
  - api_client: TestClient over the real app (bearer scheme) with an isolated store
  - basic_client: TestClient over a small app serving the same router with the
    basic scheme

Design: the API fixtures use named shared-memory SQLite URIs (not plain
:memory:) because TestClient runs sync store calls in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test stores use a tmp_path file so concurrent writers
(the rotation race test) get SQLite's file locking instead of shared-cache
table locks.

DEBUG must be set before any auth/core import so get_settings() generates the
signing secrets instead of refusing to start. The login rate limit is raised so
the suite does not trip it.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, auth_error_handler, http_exception_handler, validation_error_handler
from api.routes.v1.users import create_users_router
from auth.credentials import hash_password
from auth.dependencies import BasicStrategy
from auth.errors import AuthError
from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_memory_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@x.com"


def _insert_user(store: UserStore, email: str, password: str, role: str = ROLE_USER) -> User:
    return store.create_user(User(email=email, hashed_password=hash_password(password), role=role))


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires the test store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> Generator[UserStore, None, None]:
    s = UserStore(f"sqlite:///{tmp_path / 'users.db'}")
    yield s
    s.close()


@pytest.fixture
def make_user(store: UserStore) -> Callable[..., User]:
    """Insert a user into the unit-test store. Password defaults to 'p'."""

    def _make(email: str | None = None, password: str = "p", role: str = ROLE_USER) -> User:
        return _insert_user(store, email or unique_email(), password, role)

    return _make


# ---------------------------------------------------------------------------
# Module-scoped API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


class ApiContext:
    """Bundle handed to API tests: client, store, and a seeded admin."""

    def __init__(self, client: TestClient, store: UserStore, admin_email: str, admin_password: str) -> None:
        self.client = client
        self.store = store
        self.admin_email = admin_email
        self.admin_password = admin_password

    def register(self, email: str | None = None, password: str = "p") -> tuple[str, str]:
        """POST /users and return (id, email)."""
        email = email or unique_email()
        resp = self.client.post("/users", json={"email": email, "password": password})
        assert resp.status_code == 201, resp.text
        return resp.json()["id"], email

    def login(self, email: str, password: str = "p") -> dict:
        resp = self.client.post("/users/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()

    def bearer(self, email: str, password: str = "p") -> dict[str, str]:
        return {"Authorization": f"Bearer {self.login(email, password)['accessToken']}"}

    def admin_headers(self) -> dict[str, str]:
        return self.bearer(self.admin_email, self.admin_password)


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext over the real app with an isolated in-memory store.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, dependencies and exception handlers.
    """
    user_store = _make_memory_store(request.module.__name__.replace(".", "_"))
    admin_email = unique_email("admin")
    _insert_user(user_store, admin_email, "adminpass", role=ROLE_ADMIN)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, user_store, admin_email, "adminpass")

    user_store.close()


@pytest.fixture(scope="module")
def basic_client(request: pytest.FixtureRequest) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext over an app whose /users router uses BasicStrategy."""
    user_store = _make_memory_store("basic_" + request.module.__name__.replace(".", "_"))
    admin_email = unique_email("admin")
    _insert_user(user_store, admin_email, "adminpass", role=ROLE_ADMIN)

    basic_app = FastAPI(lifespan=_patch_lifespan(user_store))
    basic_app.state.limiter = limiter
    basic_app.include_router(create_users_router(BasicStrategy()))
    basic_app.add_exception_handler(AuthError, auth_error_handler)
    basic_app.add_exception_handler(HTTPException, http_exception_handler)
    basic_app.add_exception_handler(RequestValidationError, validation_error_handler)

    with TestClient(basic_app, raise_server_exceptions=True) as client:
        yield ApiContext(client, user_store, admin_email, "adminpass")

    user_store.close()
