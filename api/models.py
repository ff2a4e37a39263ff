"""
API request and response models for GridPortal JSON endpoints.

These Pydantic v2 models define the HTTP transport contract for the api/
layer. The session dataclasses in sessions/models.py own the internal
representation; route handlers map between the two. Wire field names are
camelCase (clientName, userId) because the browser code expects them.
"""

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Width of user_logs.user_id.
USER_ID_MAX_LENGTH = 255

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LogRequest(BaseModel):
    """Request body for POST /api/log.

    interaction is free-form and stored as JSON. userId is optional; when it is
    missing the session's username is used. Any JSON value is accepted for
    userId: non-strings are stored as their JSON text, and everything is cut to
    the column width, so a client-side id never turns the call into a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    interaction: Any = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            value = json.dumps(value, default=str)
        return value[:USER_ID_MAX_LENGTH]


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LogResponse(BaseModel):
    ok: bool = True


class ProfileResponse(BaseModel):
    """Response for GET /api/profile. Values come straight from the session."""

    model_config = ConfigDict(populate_by_name=True)

    client_name: str = Field(alias="clientName")
    client_id: Union[int, str] = Field(alias="clientId")


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope for every JSON error response."""

    error: ErrorDetail
