"""
tests/test_lifespan.py -- Startup behaviour of the API lifespan.

Coverage:
  - an unreachable database at startup exits the process with status 1
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from sqlalchemy.exc import OperationalError

from api.main import app, lifespan
from core.context import AppContext


def test_unreachable_database_exits(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    def refuse(cls, settings, db=None):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(AppContext, "open", classmethod(refuse))

    async def start() -> None:
        async with lifespan(app):
            pass

    with caplog.at_level(logging.CRITICAL, logger="gridportal.api"):
        with pytest.raises(SystemExit) as exc_info:
            asyncio.run(start())

    assert exc_info.value.code == 1
    assert "Cannot connect to database" in caplog.text
