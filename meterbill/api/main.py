"""
FastAPI application entry point for the meter billing API.

Loads and validates AppSettings at startup, initializes the database engine
and, when enabled, runs the peak/rollup scheduler loops as a background task
for the lifetime of the app. Store failures are mapped to HTTP 503 here so
individual routes do not repeat the handling.

CHANGELOG:
- 2026-10-16: Start scheduler loops in lifespan
- 2026-10-16: Register notifications router
- 2026-10-15: Initial creation
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meterbill.api.energy import router as energy_router
from meterbill.api.health import router as health_router
from meterbill.api.notifications import router as notifications_router
from meterbill.api.readings import router as readings_router
from meterbill.config import get_settings
from meterbill.db.session import dispose_engine, init_engine
from meterbill.health import SchedulerHealth
from meterbill.scheduler import log_config_summary, run_loops
from meterbill.services.store import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

SERVICE_NAME = "meter-billing"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: config, database engine and scheduler task.

    Startup:
        - Loads AppSettings (fails fast on missing or invalid values).
        - Initializes the async engine and session factory.
        - Starts the scheduler loops if ``scheduler_enabled``.

    Shutdown:
        - Signals the scheduler loops and waits for them to finish.
        - Disposes the engine.
    """
    settings = get_settings()
    app.state.settings = settings
    session_factory = init_engine(settings.database_url)

    shutdown_event = asyncio.Event()
    app.state.scheduler_task = None
    if settings.scheduler_enabled:
        log_config_summary(settings)
        app.state.scheduler_task = asyncio.create_task(
            run_loops(
                session_factory=session_factory,
                settings=settings,
                shutdown_event=shutdown_event,
                health=SchedulerHealth(settings.health_path),
            )
        )

    logger.info("Configuration validated, meter billing API ready")
    yield

    logger.info("Meter billing API shutting down")
    shutdown_event.set()
    if app.state.scheduler_task is not None:
        await app.state.scheduler_task
    await dispose_engine()


app = FastAPI(
    title="Meter Billing API",
    description="Energy, billing and solar sizing from power meter readings.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Content-Type"],
)

app.include_router(health_router)
app.include_router(readings_router)
app.include_router(energy_router)
app.include_router(notifications_router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Report store failures as 503 without retrying."""
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    detail = "Reading store timed out" if isinstance(exc, StoreTimeoutError) else (
        "Reading store unavailable"
    )
    return JSONResponse(status_code=503, content={"detail": detail})


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: Service name, version and status.
    """
    return {"status": "ok", "service": SERVICE_NAME, "version": VERSION}
