"""
core/audit.py -- Best-effort audit log of user actions.

Every login, signup, logout and client-reported interaction appends one row to
user_logs. Writes are fire-and-forget:

  - schedule() attaches record() to FastAPI BackgroundTasks, so the insert runs
    after the response has been sent and never delays it.
  - record() catches every write failure and reports it to the operational log.
    A lost audit row is acceptable; a failed request because of one is not.

There is no read path in the application.

Security: all inserts use bound parameters.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import BackgroundTasks
from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("gridportal.audit")

_metadata = MetaData()

user_logs = Table(
    "user_logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255)),  # NULL for anonymous interactions
    Column("created_at", String(32), nullable=False),
    Column("interaction", Text, nullable=False),  # JSON text
    Column("ip_address", String(45)),  # fits IPv6
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def serialize_interaction(interaction: Any) -> str:
    """Return interaction as text: strings verbatim, anything else as JSON."""
    if isinstance(interaction, str):
        return interaction
    return json.dumps(interaction, default=str)


class AuditLog:
    """Append-only writer for the user_logs table.

    Usage:
        audit = AuditLog(db.engine)
        audit.schedule(background_tasks, "bob", {"action": "login"}, "10.0.0.5")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def record(self, user_id: Optional[str], interaction: Any, ip: Optional[str] = None) -> None:
        """Insert one log entry. Never raises."""
        try:
            payload = serialize_interaction(interaction)
            with self.engine.begin() as conn:
                conn.execute(
                    user_logs.insert().values(
                        user_id=user_id,
                        created_at=_now_iso(),
                        interaction=payload,
                        ip_address=ip,
                    )
                )
        except (SQLAlchemyError, TypeError, ValueError):
            logger.exception("Audit log write failed (user=%r, ip=%r)", user_id, ip)

    def schedule(
        self,
        background_tasks: BackgroundTasks,
        user_id: Optional[str],
        interaction: Any,
        ip: Optional[str] = None,
    ) -> None:
        """Queue record() to run after the response is sent."""
        background_tasks.add_task(self.record, user_id, interaction, ip)
