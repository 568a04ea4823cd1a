#!/usr/bin/env python3
"""
Users API -- account administration from the command line.

Public registration (POST /users) always creates role "user". Admin accounts
are seeded here, out of band, against the same database the server uses.

Usage:
  python main.py create-admin --email admin@example.com --password 's3cret'
  python main.py promote --email someone@example.com
  python main.py list-users

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the user store (see core/config.py).
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.credentials import hash_password
from auth.models import ROLE_ADMIN, User
from auth.store import UserStore
from core.config import get_settings


def _create_admin(store: UserStore, email: str, password: str) -> int:
    email = email.strip().lower()
    try:
        user = store.create_user(User(email=email, hashed_password=hash_password(password), role=ROLE_ADMIN))
    except IntegrityError:
        print(f"  [!] A user with email '{email}' already exists. Use 'promote' instead.")
        return 1
    print(f"  Admin created: {user.email} (id {user.id})")
    return 0


def _promote(store: UserStore, email: str) -> int:
    user = store.get_by_email(email.strip().lower())
    if user is None:
        print(f"  [!] No user with email '{email}'.")
        return 1
    store.update_user(user.id, role=ROLE_ADMIN)
    print(f"  {user.email} is now an admin.")
    return 0


def _list_users(store: UserStore) -> int:
    users = store.list_users()
    if not users:
        print("  No users.")
        return 0
    for u in users:
        print(f"  {u.id}  {u.role:<5}  {u.email}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="users-api",
        description="Administer Users API accounts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create a new admin account")
    create.add_argument("--email", required=True, help="Login email of the new admin")
    create.add_argument(
        "--password",
        help="Password for the new admin (prompted for when omitted, so it stays out of shell history)",
    )

    promote = sub.add_parser("promote", help="Give an existing account the admin role")
    promote.add_argument("--email", required=True)

    sub.add_parser("list-users", help="Print every account")

    args = parser.parse_args(argv)

    store = UserStore(get_settings().database_url)
    try:
        if args.command == "create-admin":
            password = args.password or getpass.getpass("Password: ")
            if not password:
                print("  [!] Password must not be empty.")
                return 1
            return _create_admin(store, args.email, password)
        if args.command == "promote":
            return _promote(store, args.email)
        return _list_users(store)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
