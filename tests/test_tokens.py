"""Unit tests for auth/tokens.py -- password hashing, credential check, cookie signing.

Covers:
- bcrypt hashes use the fixed cost factor and verify correctly
- a malformed stored hash counts as a mismatch, not an error
- authenticate(): success, unknown pair, wrong password, DB failure
- authenticate() runs bcrypt even when the pair does not exist
- signed session tokens reject tampering
"""

import asyncio

import pytest
from itsdangerous import Signer
from sqlalchemy.exc import SQLAlchemyError

import auth.tokens as tokens
from auth.tokens import (
    authenticate,
    hash_password,
    sign_session_id,
    unsign_session_id,
    verify_password,
)
from sessions.models import Authenticated


class TestPasswords:
    def test_hash_uses_fixed_cost(self) -> None:
        assert hash_password("pw1").startswith("$2b$10$")

    def test_verify(self) -> None:
        hashed = hash_password("pw1")
        assert verify_password("pw1", hashed)
        assert not verify_password("pw2", hashed)

    def test_malformed_hash_is_mismatch(self) -> None:
        assert verify_password("pw1", "not-a-bcrypt-hash") is False


class TestAuthenticate:
    def test_success(self, ctx) -> None:
        ctx.db.add_user("acme", "bob", "pw1")
        user = asyncio.run(authenticate(ctx.db, "acme", "bob", "pw1"))
        assert user == Authenticated(client_id=1, client_name="acme", username="bob")

    def test_unknown_pair_and_wrong_password(self, ctx) -> None:
        ctx.db.add_user("acme", "bob", "pw1")
        assert asyncio.run(authenticate(ctx.db, "acme", "nobody", "pw1")) is None
        assert asyncio.run(authenticate(ctx.db, "globex", "bob", "pw1")) is None
        assert asyncio.run(authenticate(ctx.db, "acme", "bob", "wrong")) is None

    def test_unknown_pair_still_runs_bcrypt(self, ctx, monkeypatch: pytest.MonkeyPatch) -> None:
        checked: list[str] = []

        def spy(plain: str, hashed: str) -> bool:
            checked.append(hashed)
            return False

        monkeypatch.setattr(tokens, "verify_password", spy)
        assert asyncio.run(authenticate(ctx.db, "acme", "nobody", "pw1")) is None
        assert checked == [tokens._DUMMY_HASH]

    def test_database_failure_propagates(self, ctx) -> None:
        ctx.db.failing.add("sp_auth_login")
        with pytest.raises(SQLAlchemyError):
            asyncio.run(authenticate(ctx.db, "acme", "bob", "pw1"))


class TestSessionCookieSigning:
    def test_sign_and_unsign(self) -> None:
        assert unsign_session_id(sign_session_id("abc123")) == "abc123"

    def test_tampered_value_rejected(self) -> None:
        signed = sign_session_id("abc123")
        assert unsign_session_id("xyz789" + signed[len("abc123") :]) is None

    def test_foreign_key_rejected(self) -> None:
        foreign = Signer("another-secret-that-is-long-enough!!", salt="gridportal.session").sign("abc123")
        assert unsign_session_id(foreign.decode("utf-8")) is None

    def test_unsigned_value_rejected(self) -> None:
        assert unsign_session_id("abc123") is None
