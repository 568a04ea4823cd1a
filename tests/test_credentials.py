"""Unit tests for auth/credentials.py -- password hashing and the credential verifier.

Covers:
- bcrypt hash/verify round trip, and a malformed stored hash fails closed
- check_credentials returns the user on a correct pair
- Unknown email and wrong password both return None (indistinguishable, never raise)
- Email lookup is case-insensitive
"""

import pytest

from auth.credentials import check_credentials, hash_password, verify_password


def test_hash_is_not_plaintext_and_verifies() -> None:
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_against_malformed_hash_is_false() -> None:
    assert verify_password("s3cret", "not-a-bcrypt-hash") is False


@pytest.mark.asyncio
async def test_correct_credentials_return_user(store, make_user) -> None:
    user = make_user(email="a@x.com", password="p")
    found = await check_credentials(store, "a@x.com", "p")
    assert found is not None
    assert found.id == user.id


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_are_indistinguishable(store, make_user) -> None:
    make_user(email="a@x.com", password="p")
    unknown = await check_credentials(store, "nobody@x.com", "p")
    wrong = await check_credentials(store, "a@x.com", "not-p")
    assert unknown is None
    assert wrong is None


@pytest.mark.asyncio
async def test_email_lookup_ignores_case_and_whitespace(store, make_user) -> None:
    make_user(email="a@x.com", password="p")
    assert await check_credentials(store, "  A@X.com ", "p") is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [("", "p"), ("a@x.com", "")])
async def test_empty_fields_fail_closed(store, make_user, email: str, password: str) -> None:
    make_user(email="a@x.com", password="p")
    assert await check_credentials(store, email, password) is None
