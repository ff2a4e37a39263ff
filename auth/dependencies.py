"""
auth/dependencies.py -- FastAPI Depends() helpers for sessions and the access guard.

current_session() is the soft variant: it always returns a Session, Anonymous
when the request has no valid cookie or the row is gone or expired.
require_login() wraps it and raises LoginRequired unless the session is
Authenticated. The application turns LoginRequired into a 302 to "/", so
protected pages and protected JSON endpoints alike redirect rather than
erroring.

Because the guard is a dependency, FastAPI resolves it before the handler
body runs: a rejected request never reaches a stored procedure.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Request

from auth.tokens import SESSION_COOKIE, unsign_session_id
from sessions.models import Anonymous, Authenticated, Session

if TYPE_CHECKING:
    from core.context import AppContext


class LoginRequired(Exception):
    """Raised by require_login when the session is not authenticated."""


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def current_session(request: Request) -> Session:
    """Load the session named by the request's cookie."""
    cookie = request.cookies.get(SESSION_COOKIE)
    sid = unsign_session_id(cookie) if cookie else None
    if sid is None:
        return Session(sid=None, state=Anonymous())
    return Session(sid=sid, state=get_context(request).sessions.get(sid))


def require_login(session: Session = Depends(current_session)) -> Authenticated:
    """Require an authenticated session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: Authenticated = Depends(require_login)): ...
    """
    if not isinstance(session.state, Authenticated):
        raise LoginRequired()
    return session.state
