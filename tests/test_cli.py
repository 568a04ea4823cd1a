"""Tests for the account administration CLI (main.py)."""

import pytest

import main as cli
from auth.credentials import verify_password
from auth.store import UserStore
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch: pytest.MonkeyPatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setattr(get_settings(), "database_url", url)
    return url


def _read(db_url: str, email: str):
    store = UserStore(db_url)
    try:
        return store.get_by_email(email)
    finally:
        store.close()


def test_create_admin(db_url: str, capsys) -> None:
    assert cli.main(["create-admin", "--email", " Root@X.com ", "--password", "pw"]) == 0
    user = _read(db_url, "root@x.com")
    assert user.role == "admin"
    assert verify_password("pw", user.hashed_password)
    assert "Admin created" in capsys.readouterr().out


def test_create_admin_twice_fails(db_url: str) -> None:
    assert cli.main(["create-admin", "--email", "root@x.com", "--password", "pw"]) == 0
    assert cli.main(["create-admin", "--email", "root@x.com", "--password", "pw"]) == 1


def test_create_admin_prompts_for_password(db_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "typed")
    assert cli.main(["create-admin", "--email", "root@x.com"]) == 0
    assert verify_password("typed", _read(db_url, "root@x.com").hashed_password)


def test_promote(db_url: str) -> None:
    cli.main(["create-admin", "--email", "root@x.com", "--password", "pw"])
    assert cli.main(["promote", "--email", "nobody@x.com"]) == 1
    assert cli.main(["promote", "--email", "root@x.com"]) == 0


def test_list_users(db_url: str, capsys) -> None:
    assert cli.main(["list-users"]) == 0
    assert "No users." in capsys.readouterr().out
    cli.main(["create-admin", "--email", "root@x.com", "--password", "pw"])
    capsys.readouterr()
    cli.main(["list-users"])
    assert "root@x.com" in capsys.readouterr().out
