from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from puzzle_tracker.api import facilities, health, patients, views
from puzzle_tracker.config import settings
from puzzle_tracker.database import close_db, get_db_context, init_db
from puzzle_tracker.logging import configure_logging, request_id_var
from puzzle_tracker.services.errors import (
    AlertTransitionError,
    DuplicateInterventionError,
    NotFoundError,
    ScopeForbiddenError,
    TrackerError,
    VersionConflictError,
)
from puzzle_tracker.services.records import InMemoryRecordStore, SQLRecordStore
from puzzle_tracker.services.seed import build_reference_network

configure_logging()
logger = logging.getLogger("puzzle_tracker")


async def _prepare_sql_store() -> None:
    await init_db()
    logger.info("Database initialized")
    if not settings.seed_reference_data:
        return
    async with get_db_context() as db:
        store = SQLRecordStore(db)
        if await store.is_empty():
            await store.seed(build_reference_network(datetime.now(timezone.utc)))
            logger.info("Seeded reference care network")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Puzzle tracker API (record store: %s)", settings.record_store_backend)
    if settings.record_store_backend == "sql":
        try:
            await _prepare_sql_store()
        except Exception:
            logger.exception("Failed to initialize database")
            raise
    elif settings.seed_reference_data:
        app.state.record_store = InMemoryRecordStore.with_reference_data()
    else:
        app.state.record_store = InMemoryRecordStore()

    yield

    logger.info("Shutting down Puzzle tracker API")
    if settings.record_store_backend == "sql":
        try:
            await close_db()
            logger.info("Database connections closed")
        except Exception:
            logger.exception("Error closing database")
    logger.info("Puzzle tracker API shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    # Puzzle Post-Discharge Tracker API

    Risk, engagement and readmission analytics for patients discharged from
    hospital into skilled nursing facilities and the 90-day home program.

    ## Views

    - **Health system** - facilities, SNF census and the home cohort of one organization
    - **SNF chain** - every patient across a chain's facilities, highest risk first
    - **SNF facility** - admits, discharges, escalations and the full roster
    - **Central team** - risk-tier triage and a per-facility report across all tenants
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
    request_id_var.set(request_id)
    response = await call_next(request)
    response.headers.setdefault("X-Request-Id", request_id)
    return response

@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Cache-Control", "no-store")
    if not settings.debug:
        response.headers.setdefault(
            "Strict-Transport-Security",
            "max-age=63072000; includeSubDomains; preload",
        )
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.include_router(health.router)
app.include_router(facilities.router, prefix=settings.api_prefix)
app.include_router(patients.router, prefix=settings.api_prefix)
app.include_router(views.router, prefix=settings.api_prefix)


def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "status_code": status_code,
                "type": error_type,
                "request_id": request_id_var.get(),
            }
        },
    )


_TRACKER_ERRORS = (
    (NotFoundError, 404, "not_found"),
    (ScopeForbiddenError, 403, "forbidden"),
    (AlertTransitionError, 409, "conflict"),
    (VersionConflictError, 409, "conflict"),
    (DuplicateInterventionError, 409, "conflict"),
)


@app.exception_handler(TrackerError)
async def tracker_exception_handler(_request: Request, exc: TrackerError):
    for error_class, status_code, error_type in _TRACKER_ERRORS:
        if isinstance(exc, error_class):
            return _error_response(status_code, str(exc), error_type)
    return _error_response(400, str(exc), "tracker_error")


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException):
    response = _error_response(exc.status_code, exc.detail, "http_error")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "message": "Validation error",
                "status_code": 422,
                "type": "validation_error",
                "details": jsonable_encoder(exc.errors()),
                "request_id": request_id_var.get(),
            }
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(_request: Request, _exc: Exception):
    logger.exception("Unhandled error")
    return _error_response(500, "Internal server error", "server_error")
