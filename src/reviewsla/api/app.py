"""FastAPI application with lifespan, sweeper task and router mounting."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reviewsla.api.routes import admin, health, requests
from reviewsla.core.config import AppSettings
from reviewsla.core.exceptions import (
    RequestNotFoundError,
    ReviewerNotFoundError,
    VersionConflictError,
)
from reviewsla.engine.service import ReviewSLAEngine, build_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the engine, start the sweeper, and tear both down."""
    settings: AppSettings = getattr(app.state, "settings", None) or AppSettings()
    logging.basicConfig(level=settings.log_level)
    app.state.settings = settings

    engine: ReviewSLAEngine | None = getattr(app.state, "engine", None)
    if engine is None:
        engine = build_engine(settings)
        app.state.engine = engine

    logger.info(
        "engine ready (env=%s, backend=%s, compensation_log=%s, ports=%s)",
        settings.environment, settings.backend, settings.compensation_log, settings.ports,
    )
    stop = asyncio.Event()
    task = asyncio.create_task(engine.run(stop)) if settings.sla.run_sweeper else None
    try:
        yield
    finally:
        stop.set()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        engine.close()


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _conflict(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(settings: AppSettings | None = None, engine: ReviewSLAEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="ReviewSLA Human-Review Service-Level Engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.add_exception_handler(RequestNotFoundError, _not_found)
    app.add_exception_handler(ReviewerNotFoundError, _not_found)
    app.add_exception_handler(VersionConflictError, _conflict)
    app.include_router(health.router)
    app.include_router(requests.router, prefix="/requests")
    app.include_router(admin.router, prefix="/admin")
    return app
