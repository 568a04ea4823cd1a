"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and protocol code never touches SQL directly.

Writes are explicit: every mutation is a single UPDATE/INSERT/DELETE statement
and update methods return the freshly read record, so callers never mutate a
User object and "save" it back.

Refresh-token atomicity:
  swap_refresh_token() is a compare-and-swap -- the UPDATE matches on both the
  user id and the token being replaced. Two concurrent rotations presenting the
  same token both pass the read-side check, but only one UPDATE matches a row;
  the other sees rowcount 0 and is rejected. No application-level lock needed.

Security:
  All queries use bound parameters. Column names for update_user() come from
  a whitelist, never from request input.

DB path: auth/usersapi.db by default (see core.config.Settings.database_url).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from auth.errors import StoreError
from auth.models import User

logger = logging.getLogger("usersapi.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex, opaque to clients
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("refresh_token", Text),  # NULL until the first login
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///users.db")
        user = store.create_user(User(email="a@x.com", hashed_password=hash_password("p")))
        store.update_user(user.id, first_name="Ada")
        store.close()
    """

    # Fields update_user() accepts. id and created_at are immutable.
    _UPDATABLE: frozenset = frozenset(
        {"email", "hashed_password", "role", "first_name", "last_name", "refresh_token"}
    )

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> User:
        """Insert a new user and return the stored record with its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    refresh_token=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email. Emails are stored lowercased."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by creation time."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_user(self, user_id: str, **fields) -> User | None:
        """Update mutable fields and return the updated record.

        Unknown field names raise ValueError rather than being ignored.
        Returns None if user_id was not found. Raises IntegrityError when an
        email change collides with another account.
        """
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(**fields, updated_at=_now_iso())
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def swap_refresh_token(self, user_id: str, expected: str, new: str) -> User | None:
        """Replace the stored refresh token only if it still equals expected.

        Returns the updated record, or None when the user is gone or another
        request already replaced the token.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.refresh_token == expected))
                .values(refresh_token=new, updated_at=_now_iso())
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user. Returns True if deleted, False if not found.

        Deleting the record also drops its refresh token -- the only hard
        revocation the system has.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        first_name=row.first_name,
        last_name=row.last_name,
        refresh_token=row.refresh_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Async boundary
# ---------------------------------------------------------------------------


async def run_store(fn, *args, **kwargs):
    """Await a blocking UserStore method in the threadpool.

    Engine failures become StoreError (HTTP 500, cause logged, never echoed).
    IntegrityError passes through untouched: it is a client conflict (duplicate
    email), not an infrastructure failure, and callers map it to 409.
    """
    try:
        return await run_in_threadpool(fn, *args, **kwargs)
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("User store failure in %s", getattr(fn, "__name__", repr(fn)))
        raise StoreError() from exc
