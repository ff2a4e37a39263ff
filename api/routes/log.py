"""
api/routes/log.py -- Client-side interaction logging.

  POST /api/log  -- record an interaction in the audit log (public)

The response is always {"ok": true}. The insert runs as a background task
after the response is sent, so a failed write cannot change the answer.

Attribution: the body's userId wins, then the session's username, then NULL.
Anonymous callers can therefore name any user; the source IP recorded on every
row is what ties an entry to its origin. A logged-in session that submits a
different userId is reported to the operational log.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from slowapi.util import get_remote_address

from api.models import LogRequest, LogResponse
from auth.dependencies import current_session, get_context
from sessions.models import Authenticated, Session

logger = logging.getLogger("gridportal.api")

# Auth policy:
# - POST /api/log: public -- the login and signup pages report interactions too
router = APIRouter()


@router.post("/log", response_model=LogResponse)
def log_interaction(
    request: Request,
    body: LogRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(current_session),
) -> LogResponse:
    user_id = body.user_id
    if isinstance(session.state, Authenticated):
        if user_id is None:
            user_id = session.state.username
        elif user_id != session.state.username:
            logger.warning(
                "Interaction logged as %r from session of %r (client %r)",
                user_id,
                session.state.username,
                session.state.client_name,
            )

    get_context(request).audit.schedule(background_tasks, user_id, body.interaction, get_remote_address(request))
    return LogResponse()
