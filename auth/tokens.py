"""
auth/tokens.py -- Password hashing, credential check, and session cookie helpers.

Security design decisions:
  Passwords: bcrypt with a fixed cost factor (BCRYPT_ROUNDS). The cost is a
       server constant; nothing in a request can change it. The _DUMMY_HASH
       constant enables timing equalization in authenticate() so response time
       does not reveal whether a (client, username) pair exists.

  Credential check: sp_auth_login returns the stored hash for a (client,
       username) pair. A missing row and a wrong password produce the same
       result (None), so callers cannot leak which one happened.

  Session cookie: the cookie carries only the random session token, signed
       with SESSION_SECRET via itsdangerous. A tampered or foreign cookie fails
       the signature check and is treated as no session at all.

Layer rule: no imports from api/ or web/. Imports from core/ and sessions/ are
allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import bcrypt
from itsdangerous import BadSignature, Signer
from starlette.concurrency import run_in_threadpool

from core.config import SESSION_MAX_AGE, get_settings
from sessions.models import Authenticated

if TYPE_CHECKING:
    from core.database import Database

logger = logging.getLogger("gridportal.auth")

_settings = get_settings()

SESSION_COOKIE = "sid"
BCRYPT_ROUNDS = 10

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError if bcrypt rejects the input (e.g. over 72 bytes).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash counts
    as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("gridportal_timing_dummy")


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


async def authenticate(db: Database, client: str, username: str, password: str) -> Optional[Authenticated]:
    """Verify a (client, username, password) login.

    Always runs bcrypt, whether or not the pair exists:
    - Unknown pair:   bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the stored hash

    Returns the Authenticated state on success, None on bad credentials.
    Raises sqlalchemy.exc.SQLAlchemyError if the lookup itself fails.
    """
    rows = await db.call("sp_auth_login", client, username)
    if not rows or not rows[0].get("password_hash"):
        await run_in_threadpool(verify_password, password, _DUMMY_HASH)
        return None
    user = rows[0]
    if not await run_in_threadpool(verify_password, password, user["password_hash"]):
        return None
    return Authenticated(client_id=user["client_id"], client_name=client, username=username)


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------

_signer = Signer(_settings.session_secret, salt="gridportal.session")


def sign_session_id(sid: str) -> str:
    return _signer.sign(sid).decode("utf-8")


def unsign_session_id(value: str) -> Optional[str]:
    """Return the session token from a cookie value, or None if the signature is bad."""
    try:
        return _signer.unsign(value).decode("utf-8")
    except BadSignature:
        return None


def set_session_cookie(response, sid: str) -> None:
    """Write the signed session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POSTs.
    secure: only sent over HTTPS in production.
    max_age: matches the server-side session lifetime.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=sign_session_id(sid),
        httponly=True,
        samesite="lax",
        secure=_settings.is_production,
        max_age=SESSION_MAX_AGE,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        SESSION_COOKIE,
        httponly=True,
        samesite="lax",
        secure=_settings.is_production,
    )
