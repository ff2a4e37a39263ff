"""
api/routes/data.py -- Client-scoped data endpoints.

Routes (mounted under /api):
  GET /api/grid-data            -- app instances for the session's client (auth required)
  GET /api/profile              -- client name/id from the session (auth required)
  GET /api/release-notes-list   -- release note file names (public)

Tenant scoping: grid-data takes client_id from the server-side session only.
No request parameter can select another client's rows.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorDetail, ErrorResponse, ProfileResponse
from auth.dependencies import get_context, require_login
from core.config import RELEASE_NOTES_DIR
from sessions.models import Authenticated

logger = logging.getLogger("gridportal.api")

# Auth policy:
# - GET /api/grid-data:           requires auth (require_login)
# - GET /api/profile:             requires auth (require_login)
# - GET /api/release-notes-list:  public -- the login page links release notes
router = APIRouter()

_RELEASE_NOTES_DIR = RELEASE_NOTES_DIR
_RELEASE_NOTE_SUFFIX = ".html"


@router.get("/grid-data")
async def grid_data(request: Request, user: Authenticated = Depends(require_login)):
    """Return the first result set of sp_pub_grid_appinstances for the user's client."""
    db = get_context(request).db
    try:
        rows = await db.call("sp_pub_grid_appinstances", user.client_id)
    except SQLAlchemyError:
        logger.exception("Grid data query failed for client_id=%r", user.client_id)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=ErrorDetail(code="database_error", message="Database error")).model_dump(
                exclude_none=True
            ),
        )
    return rows


@router.get("/profile", response_model=ProfileResponse)
async def profile(user: Authenticated = Depends(require_login)) -> ProfileResponse:
    """Return the client context of the current session. No database round-trip."""
    return ProfileResponse(client_name=user.client_name, client_id=user.client_id)


@router.get("/release-notes-list", response_model=list[str])
def release_notes_list() -> list[str]:
    """List release note HTML files. An unreadable directory yields an empty list."""
    try:
        return sorted(
            entry.name
            for entry in _RELEASE_NOTES_DIR.iterdir()
            if entry.is_file() and entry.name.endswith(_RELEASE_NOTE_SUFFIX)
        )
    except OSError:
        logger.debug("Release notes directory unreadable: %s", _RELEASE_NOTES_DIR, exc_info=True)
        return []
