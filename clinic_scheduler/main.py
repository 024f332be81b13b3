import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_scheduler.api.routes import admin, schedule, slots
from clinic_scheduler.core.config import _ENV_FILE, settings
from clinic_scheduler.core.db import engine, init_db
from clinic_scheduler.core.errors import (
    ConfigurationIncomplete,
    ConflictBlocked,
    DataIntegrityViolation,
    DoctorNotFound,
    ScheduleValidationError,
    SchedulingError,
    TimeOffNotFound,
    TimezoneAmbiguity,
    TransactionFailure,
)

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Slot settings: batch=%d conflict_window=%dd max_range=%dd strict_dst=%s",
        settings.slot_batch_size,
        settings.conflict_window_days,
        settings.max_range_days,
        settings.strict_dst,
    )
    if settings.is_sqlite:
        # Local development without Alembic
        await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title="Clinic Scheduler API",
    description="Doctor schedules, slot compilation and schedule conflict resolution",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(slots.router, prefix="/api/v1")
app.include_router(schedule.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

_STATUS_BY_ERROR: list[tuple[type[SchedulingError], int]] = [
    (ConflictBlocked, 409),
    (DoctorNotFound, 404),
    (TimeOffNotFound, 404),
    (ScheduleValidationError, 400),
    (ConfigurationIncomplete, 400),
    (TimezoneAmbiguity, 400),
    (DataIntegrityViolation, 500),
    (TransactionFailure, 500),
]


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    content: dict = {"detail": str(exc)}
    if isinstance(exc, ConflictBlocked):
        content["conflicts"] = jsonable_encoder(exc.conflicts)
    if status_code >= 500:
        logger.exception("Scheduling failure: %s", exc)
    else:
        logger.info("%s: %s", type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content=content, headers=_cors_headers(request.headers.get("origin")))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    headers = _cors_headers(request.headers.get("origin"))
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
