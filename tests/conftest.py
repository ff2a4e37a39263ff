"""
tests/conftest.py -- Shared test fixtures for GridPortal integration tests.

This module provides:
  - FakeDatabase: a Database over in-memory SQLite whose call_procedure()
    emulates the three stored procedures (MySQL is not needed to run tests)
  - _patch_lifespan(): wires a test AppContext into app.state, bypassing the
    real startup (which would connect to MySQL)
  - ctx:         a fresh AppContext per test (own DB, own login throttle)
  - client:      TestClient with follow_redirects=False
  - login:       helper that registers a user in the fake DB and posts /index
  - audit_rows:  helper that reads back the user_logs table

Design: the engine uses StaticPool so every thread (TestClient runs sync
handlers and background tasks in a worker pool) sees the same in-memory
database. Requests in a test are sequential, so one shared connection is safe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from asgi import app
from auth.tokens import hash_password
from core.audit import user_logs
from core.config import get_settings
from core.context import AppContext
from core.database import Database

# ---------------------------------------------------------------------------
# Stored procedure emulation
# ---------------------------------------------------------------------------


class FakeDatabase(Database):
    """Database whose stored procedures are emulated in memory.

    The SQLAlchemy engine is real (SQLite) so SessionStore and AuditLog run
    their actual SQL against it. Only call_procedure() is replaced.

    Put a procedure name in `failing` to make every call to it raise, the way
    a MySQL error surfaces through SQLAlchemy.
    """

    def __init__(self) -> None:
        super().__init__("sqlite://", poolclass=StaticPool)
        self.clients: dict[str, int] = {"acme": 1, "globex": 2}
        self.users: dict[tuple[str, str], dict[str, Any]] = {}
        self.instances: dict[int, list[dict[str, Any]]] = {
            1: [
                {"instance_id": 101, "name": "acme-prod", "status": "running"},
                {"instance_id": 102, "name": "acme-staging", "status": "stopped"},
            ],
            2: [
                {"instance_id": 201, "name": "globex-prod", "status": "running"},
            ],
        }
        self.calls: list[tuple[str, tuple]] = []
        self.failing: set[str] = set()

    def add_user(self, client: str, username: str, password: str) -> None:
        self.users[(client, username)] = {
            "client_id": self.clients[client],
            "password_hash": hash_password(password),
        }

    def call_procedure(self, name: str, *params: Any) -> list[dict[str, Any]]:
        self.calls.append((name, params))
        if name in self.failing:
            raise OperationalError(f"CALL {name}", params, Exception("simulated failure"))

        if name == "sp_auth_login":
            client, username = params
            user = self.users.get((client, username))
            return [dict(user)] if user else []

        if name == "sp_admin_register_user":
            client, username, password_hash = params
            if client not in self.clients:
                raise OperationalError(f"CALL {name}", params, Exception("Unknown client"))
            if (client, username) in self.users:
                raise IntegrityError(f"CALL {name}", params, Exception("Duplicate entry"))
            self.users[(client, username)] = {
                "client_id": self.clients[client],
                "password_hash": password_hash,
            }
            return []

        if name == "sp_pub_grid_appinstances":
            (client_id,) = params
            return [dict(row) for row in self.instances.get(client_id, [])]

        raise ValueError(f"Unknown stored procedure: {name!r}")


# ---------------------------------------------------------------------------
# Lifespan patch
# ---------------------------------------------------------------------------


def _patch_lifespan(ctx: AppContext):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.ctx = ctx
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ctx() -> Generator[AppContext, None, None]:
    """A fresh AppContext on its own in-memory database."""
    context = AppContext.open(get_settings(), db=FakeDatabase())
    yield context
    context.close()


@pytest.fixture
def client(ctx: AppContext) -> Generator[TestClient, None, None]:
    """TestClient over the real app wired to `ctx`.

    follow_redirects=False: tests assert on redirect locations, which are
    invisible once the client follows them.
    """
    app.router.lifespan_context = _patch_lifespan(ctx)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def login(client: TestClient, ctx: AppContext) -> Callable[..., Any]:
    """Return login(client_name, username, password) -> response.

    Registers the user in the fake database first (unless already present),
    then submits the login form.
    """

    def _login(client_name: str = "acme", username: str = "alice", password: str = "alicepass1"):
        if (client_name, username) not in ctx.db.users:
            ctx.db.add_user(client_name, username, password)
        return client.post("/index", data={"client": client_name, "username": username, "password": password})

    return _login


@pytest.fixture
def audit_rows(ctx: AppContext) -> Callable[[], list[dict[str, Any]]]:
    def _rows() -> list[dict[str, Any]]:
        with ctx.db.engine.connect() as conn:
            result = conn.execute(select(user_logs).order_by(user_logs.c.id))
            return [dict(row) for row in result.mappings()]

    return _rows
