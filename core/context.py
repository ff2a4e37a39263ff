"""
core/context.py -- Explicit application context.

AppContext owns every long-lived resource a handler needs: the database pool,
the session store, the audit log and the login throttle. It is built once in
the API lifespan, stored on app.state.ctx, and closed at shutdown. Handlers
reach it through auth.dependencies.get_context(request); nothing is held in
module globals.

This is the one core/ module that imports from sessions/ and auth/: it is the
assembly point, not a dependency of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth.throttle import LoginThrottle
from core.audit import AuditLog
from core.config import Settings
from core.database import Database
from sessions.store import SessionStore

logger = logging.getLogger("gridportal.context")


@dataclass
class AppContext:
    settings: Settings
    db: Database
    sessions: SessionStore
    audit: AuditLog
    login_throttle: LoginThrottle

    @classmethod
    def open(cls, settings: Settings, db: Optional[Database] = None) -> "AppContext":
        """Connect and build all stores.

        Raises sqlalchemy.exc.SQLAlchemyError if the database cannot be
        reached; the caller decides whether that is fatal.
        """
        db = db or Database(settings.database_url)
        db.ping()
        logger.info("Database connection established")
        return cls(
            settings=settings,
            db=db,
            sessions=SessionStore(db.engine),
            audit=AuditLog(db.engine),
            login_throttle=LoginThrottle(),
        )

    def close(self) -> None:
        self.db.close()
