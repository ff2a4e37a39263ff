"""
sessions/store.py -- Server-side session rows with a fixed TTL.

Each login creates one row keyed by a random token. The browser only ever
holds the token (signed, in an httpOnly cookie); the session fields stay on
the server. Rows expire 24 hours after creation. Expired rows are ignored on
read (and deleted) and swept by purge_expired(), which the API lifespan calls
periodically.

Schema (created on first use):
  sessions(session_id VARCHAR(128) PK, expires INT unix-seconds, data TEXT JSON)

Usage:
    store = SessionStore(db.engine)
    sid = store.create(Authenticated(client_id=1, client_name="acme", username="bob"))
    state = store.get(sid)          # Authenticated(...) or Anonymous()
    store.destroy(sid)
    store.purge_expired()           # returns number of rows removed

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
import logging
import secrets
import time

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from sessions.models import Anonymous, Authenticated, SessionState, from_record, to_record

logger = logging.getLogger("gridportal.sessions")

_DEFAULT_TTL = 60 * 60 * 24  # 24 hours in seconds

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("session_id", String(128), primary_key=True),
    Column("expires", Integer, nullable=False),
    Column("data", Text),
)


class SessionStore:
    def __init__(self, engine: Engine, ttl: int = _DEFAULT_TTL) -> None:
        self.engine = engine
        self.ttl = ttl
        _metadata.create_all(self.engine)

    def create(self, state: Authenticated) -> str:
        """Persist a new session and return its token."""
        sid = secrets.token_urlsafe(32)
        with self.engine.begin() as conn:
            conn.execute(
                _sessions.insert().values(
                    session_id=sid,
                    expires=int(time.time()) + self.ttl,
                    data=json.dumps(to_record(state)),
                )
            )
        return sid

    def get(self, sid: str) -> SessionState:
        """Return the state for sid, or Anonymous if unknown, expired or unreadable."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_sessions.c.expires, _sessions.c.data).where(_sessions.c.session_id == sid)
            ).first()
        if row is None:
            return Anonymous()
        if row.expires <= time.time():
            self.destroy(sid)
            return Anonymous()
        try:
            record = json.loads(row.data) if row.data else None
        except ValueError:
            logger.warning("Discarding unreadable session data")
            return Anonymous()
        return from_record(record)

    def destroy(self, sid: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.session_id == sid))

    def purge_expired(self) -> int:
        """Delete all expired rows. Returns number of rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires <= int(time.time())))
        return result.rowcount
