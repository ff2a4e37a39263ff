"""
api/main.py -- FastAPI application entry point for GridPortal.

Run with:  python main.py
           uvicorn asgi:app --reload

Middleware stack:
  log_requests -- one log line per request (method, path, status, latency, client)

Lifespan builds the AppContext (database pool, session store, audit log,
login throttle) and starts the expired-session purge task; shutdown cancels
the task and closes the context. If the database is unreachable at startup
the process exits instead of serving in a degraded state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse
from api.routes.data import router as data_router
from api.routes.log import router as log_router
from auth.dependencies import LoginRequired
from core.config import get_settings
from core.context import AppContext

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gridportal.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------

_PURGE_INTERVAL = 15 * 60


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session rows every 15 minutes.

    A failed sweep is logged and retried on the next tick. CancelledError from
    task.cancel() during shutdown propagates out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL)
        try:
            removed = await run_in_threadpool(app.state.ctx.sessions.purge_expired)
        except SQLAlchemyError:
            logger.warning("Expired session purge failed", exc_info=True)
            continue
        if removed:
            logger.info("Purged %d expired session(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the AppContext on startup and close it on shutdown.

    A database that cannot be reached is fatal: log it and exit(1).
    """
    settings = get_settings()
    logger.info("GridPortal starting up (env=%s)", settings.app_env)
    try:
        ctx = AppContext.open(settings)
    except SQLAlchemyError:
        logger.critical(
            "Cannot connect to database %s@%s:%s -- exiting",
            settings.db_name,
            settings.db_host,
            settings.db_port,
            exc_info=True,
        )
        raise SystemExit(1)
    app.state.ctx = ctx
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    ctx.close()
    logger.info("GridPortal shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GridPortal",
    description="Multi-tenant application instance portal.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(data_router, prefix="/api", tags=["Data"])
app.include_router(log_router, prefix="/api", tags=["Log"])
# Web UI router and static mounts are added by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# JSON errors share the ErrorResponse envelope. LoginRequired is the access
# guard's signal and always becomes a redirect to the login page.
# ---------------------------------------------------------------------------


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    return RedirectResponse("/", status_code=302)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or form fields fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on Starlette's base class so routing 404/405 errors get the
    same envelope as errors raised by handlers.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception goes to the log only; the client gets a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(exclude_none=True),
    )
