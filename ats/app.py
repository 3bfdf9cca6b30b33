"""FastAPI application for the ATS workflow engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import EnginePolicy, settings
from .directory import HttpRecruiterDirectory
from .errors import (
    BusinessRuleError,
    InvalidTransitionError,
    NotFoundError,
    OverAllocationError,
    OwnershipConflictError,
    WorkflowError,
)
from .events import build_publisher, to_jsonable

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = (
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (OwnershipConflictError, 403),
    (OverAllocationError, 422),
    (BusinessRuleError, 409),
)


def status_for(exc: WorkflowError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev)
    if "sqlite" in settings.database_url:
        from .database import create_tables
        await create_tables()
    app.state.events = build_publisher()
    app.state.policy = EnginePolicy.from_settings()
    app.state.directory = None
    if settings.network_service_url:
        app.state.directory = HttpRecruiterDirectory(
            settings.network_service_url,
            timeout=settings.network_service_timeout_seconds,
        )
    yield
    await app.state.events.close()
    if app.state.directory is not None:
        await app.state.directory.close()


app = FastAPI(title=settings.app_title, lifespan=lifespan)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    status = status_for(exc)
    logger.info("%s %s rejected with %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=status,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": to_jsonable(exc.details),
            }
        },
    )


# Import and register routers
from .routers import (  # noqa: E402
    applications,
    candidates,
    health,
    placements,
    proposals,
)

app.include_router(health.router)
app.include_router(applications.router)
app.include_router(candidates.router)
app.include_router(placements.router)
app.include_router(proposals.router)
