"""
core/database.py -- Connection pool and stored-procedure gateway.

The application reads and writes tenant data exclusively through stored
procedures. Database wraps one SQLAlchemy engine (the process-wide connection
pool) and exposes:

  call_procedure(name, *params)  -- blocking; returns the first result set
  call(name, *params)            -- awaitable; runs call_procedure in the
                                    Starlette thread pool
  ping()                         -- startup connectivity check
  close()                        -- dispose of the pool

SessionStore and AuditLog share the same engine so the whole app holds a
single pool.

Security: procedure names cannot be bound parameters, so only names listed in
PROCEDURES are accepted and every argument is a bound parameter.

Errors: all database failures surface as sqlalchemy.exc.SQLAlchemyError.
Nothing here retries; callers decide what the user sees.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger("gridportal.database")

# Procedure name -> number of positional parameters.
PROCEDURES: dict[str, int] = {
    "sp_auth_login": 2,  # (client, username) -> client_id, password_hash
    "sp_admin_register_user": 3,  # (client, username, password_hash)
    "sp_pub_grid_appinstances": 1,  # (client_id) -> instance rows
}


class Database:
    """Owns the connection pool and runs stored procedures.

    Usage:
        db = Database(settings.database_url)
        db.ping()
        rows = db.call_procedure("sp_auth_login", "acme", "bob")
        rows = await db.call("sp_pub_grid_appinstances", 1)
        db.close()
    """

    def __init__(self, db_url: str | URL, **engine_kwargs: Any) -> None:
        url = make_url(db_url)
        connect_args: dict = {}
        if url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
        options: dict[str, Any] = {
            "connect_args": connect_args,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
        options.update(engine_kwargs)
        self.engine: Engine = create_engine(url, **options)

    def ping(self) -> None:
        """Run SELECT 1. Raises SQLAlchemyError if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def call_procedure(self, name: str, *params: Any) -> list[dict[str, Any]]:
        """CALL a stored procedure and return its first result set as dicts.

        Procedures that return no rows (e.g. registration) yield []. The call
        is committed so write procedures take effect.
        """
        arity = PROCEDURES.get(name)
        if arity is None:
            raise ValueError(f"Unknown stored procedure: {name!r}")
        if len(params) != arity:
            raise ValueError(f"{name} expects {arity} parameters, got {len(params)}")

        placeholders = ", ".join(f":p{i}" for i in range(arity))
        # name is checked against PROCEDURES above; values are bound.
        stmt = text(f"CALL {name}({placeholders})")
        bound = {f"p{i}": value for i, value in enumerate(params)}

        with self.engine.connect() as conn:
            result = conn.execute(stmt, bound)
            rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
            conn.commit()
        logger.debug("%s returned %d row(s)", name, len(rows))
        return rows

    async def call(self, name: str, *params: Any) -> list[dict[str, Any]]:
        """Awaitable call_procedure. Raises the same errors."""
        return await run_in_threadpool(self.call_procedure, name, *params)

    def close(self) -> None:
        self.engine.dispose()
