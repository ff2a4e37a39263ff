"""
sessions/models.py -- Tagged session state.

A request is either Anonymous or Authenticated. Authenticated always carries
client_id together with the logged-in flag, so "logged in without a tenant"
cannot be represented.

The persisted record keeps the field names the browser-facing code has always
used (loggedIn, clientId, clientName, username).

Layer rule: no imports from api/, web/, auth/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Anonymous:
    """No login on this session (or no session at all)."""


@dataclass(frozen=True)
class Authenticated:
    """A session whose password check succeeded.

    client_name is the client string the user typed at login, not a
    canonicalized tenant name.
    """

    client_id: Any
    client_name: str
    username: str


SessionState = Union[Anonymous, Authenticated]


@dataclass(frozen=True)
class Session:
    """The session attached to the current request.

    sid is the unsigned session token from the cookie, or None when the
    request carried no valid cookie.
    """

    sid: Optional[str]
    state: SessionState

    @property
    def authenticated(self) -> bool:
        return isinstance(self.state, Authenticated)


def to_record(state: SessionState) -> dict[str, Any]:
    if isinstance(state, Authenticated):
        return {
            "loggedIn": True,
            "clientId": state.client_id,
            "clientName": state.client_name,
            "username": state.username,
        }
    return {"loggedIn": False}


def from_record(record: Optional[dict[str, Any]]) -> SessionState:
    """Decode a stored record. Anything short of a complete login is Anonymous."""
    if not isinstance(record, dict):
        return Anonymous()
    if record.get("loggedIn") is not True or record.get("clientId") is None:
        return Anonymous()
    return Authenticated(
        client_id=record["clientId"],
        client_name=str(record.get("clientName") or ""),
        username=str(record.get("username") or ""),
    )
