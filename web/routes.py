"""
web/routes.py -- Page routes for the GridPortal web UI.

These routes serve the static HTML pages and handle the login, signup and
logout form posts. They share the AppContext with the API routes but answer
with pages, plain-text messages and redirects instead of JSON.

Routes:
  GET  /         -- login page, or redirect to /landing if already logged in
  POST /index    -- password login (rate-limited on failures)
  GET  /signup   -- signup page
  POST /signup   -- register a user through sp_admin_register_user
  GET  /landing  -- landing page (auth required)
  GET  /logout   -- destroy the session, redirect to /

Security:
  Unknown (client, username) and wrong password return the identical 401
  response; authenticate() also equalizes bcrypt timing between the two.
  Each login issues a fresh session token; an existing session is dropped.
  Cache-Control: no-store on login responses.
  Database failures are logged and answered with a generic message.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Request
from fastapi.responses import FileResponse, PlainTextResponse, RedirectResponse, Response
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from auth.dependencies import current_session, get_context, require_login
from auth.throttle import LOGIN_LIMIT_MESSAGE
from auth.tokens import authenticate, clear_session_cookie, hash_password, set_session_cookie
from core.config import HTML_DIR
from sessions.models import Authenticated, Session

logger = logging.getLogger("gridportal.web")

router = APIRouter()

BAD_CREDENTIALS = "Invalid credentials for this client"
LOGIN_FAILED = "Login failed. Try again."
REGISTRATION_FAILED = "Registration failed."
REGISTRATION_ERROR = "Error during registration."


def _page(name: str) -> FileResponse:
    return FileResponse(HTML_DIR / name, media_type="text/html")


def _no_store(response: Response) -> Response:
    response.headers["Cache-Control"] = "no-store"
    return response


# ---------------------------------------------------------------------------
# GET / -- login page
# ---------------------------------------------------------------------------


@router.get("/")
def index(session: Session = Depends(current_session)) -> Response:
    if session.authenticated:
        return RedirectResponse("/landing", status_code=302)
    return _page("index.html")


# ---------------------------------------------------------------------------
# POST /index -- password login
# ---------------------------------------------------------------------------


@router.post("/index")
async def login_post(
    request: Request,
    background_tasks: BackgroundTasks,
    client: str = Form(...),
    username: str = Form(...),
    password: str = Form(...),
    session: Session = Depends(current_session),
) -> Response:
    """Handle the login form.

    Every attempt takes a slot from the source address's budget before the
    credentials are looked at; only a successful login gives it back. After 5
    failures in 10 minutes the form is refused with 429.
    """
    ctx = get_context(request)
    source = get_remote_address(request)
    throttle = ctx.login_throttle

    if not throttle.acquire(source):
        logger.warning("Login throttled for %s", source)
        return _no_store(
            PlainTextResponse(
                LOGIN_LIMIT_MESSAGE,
                status_code=429,
                headers={"Retry-After": str(throttle.retry_after(source))},
            )
        )

    try:
        user = await authenticate(ctx.db, client, username, password)
    except SQLAlchemyError:
        logger.exception("Login lookup failed for client %r", client)
        return _no_store(PlainTextResponse(LOGIN_FAILED, status_code=500))

    if user is None:
        return _no_store(PlainTextResponse(BAD_CREDENTIALS, status_code=401))

    throttle.release(source)

    if session.sid is not None:
        await run_in_threadpool(ctx.sessions.destroy, session.sid)
    sid = await run_in_threadpool(ctx.sessions.create, user)

    ctx.audit.schedule(background_tasks, user.username, {"action": "login", "client": client}, source)

    resp = RedirectResponse("/landing", status_code=302)
    set_session_cookie(resp, sid)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# /signup -- registration
# ---------------------------------------------------------------------------


@router.get("/signup")
def signup_form() -> FileResponse:
    return _page("signup.html")


@router.post("/signup")
async def signup_post(
    request: Request,
    background_tasks: BackgroundTasks,
    client: str = Form(...),
    username: str = Form(...),
    password: str = Form(...),
) -> Response:
    """Register a user. Does not log them in; a separate login is required."""
    ctx = get_context(request)

    try:
        hashed = await run_in_threadpool(hash_password, password)
    except (ValueError, TypeError):
        logger.warning("Password hashing failed during signup for client %r", client, exc_info=True)
        return PlainTextResponse(REGISTRATION_ERROR, status_code=400)

    try:
        await ctx.db.call("sp_admin_register_user", client, username, hashed)
    except SQLAlchemyError:
        logger.exception("Registration failed for client %r", client)
        return PlainTextResponse(REGISTRATION_FAILED, status_code=500)

    ctx.audit.schedule(
        background_tasks,
        username,
        {"action": "signup", "client": client},
        get_remote_address(request),
    )
    return _page("registration_successful.html")


# ---------------------------------------------------------------------------
# GET /landing
# ---------------------------------------------------------------------------


@router.get("/landing")
def landing(user: Authenticated = Depends(require_login)) -> FileResponse:
    return _page("landing.html")


# ---------------------------------------------------------------------------
# GET /logout
# ---------------------------------------------------------------------------


@router.get("/logout")
def logout(
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(current_session),
) -> RedirectResponse:
    """Log the logout, then destroy the session and clear the cookie.

    The audit entry is built from the session fields before the row is
    deleted. Works (and still logs) for anonymous requests.
    """
    ctx = get_context(request)
    state = session.state
    username = state.username if isinstance(state, Authenticated) else None
    client_name = state.client_name if isinstance(state, Authenticated) else None

    ctx.audit.schedule(
        background_tasks,
        username,
        {"action": "logout", "client": client_name},
        get_remote_address(request),
    )

    if session.sid is not None:
        ctx.sessions.destroy(session.sid)

    resp = RedirectResponse("/", status_code=302)
    clear_session_cookie(resp)
    return resp
