from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learning_analytics.api.admin import router as admin_router
from learning_analytics.api.analytics import router as analytics_router
from learning_analytics.api.health import router as health_router
from learning_analytics.api.progress import router as progress_router
from learning_analytics.core.config import SETTINGS
from learning_analytics.core.errors import (
    CatalogUnavailable,
    CompletionNotFound,
    EnrollmentNotFound,
    LedgerBusyError,
    ValidationError,
)
from learning_analytics.core.logging import setup_logging
from learning_analytics.db.engine import lifespan_db
from learning_analytics.db.redis import lifespan_redis
from learning_analytics.middleware.metrics import MetricsMiddleware
from learning_analytics.middleware.request_context import RequestContextMiddleware
from learning_analytics.services.engine import lifespan_catalog

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            async with lifespan_catalog():
                yield


app = FastAPI(
    title="learning-analytics",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# ---------------------------------------------------------------------------
# Engine errors -> HTTP
# ---------------------------------------------------------------------------


@app.exception_handler(ValidationError)
async def _validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(EnrollmentNotFound)
async def _enrollment_not_found(_request: Request, exc: EnrollmentNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Enrollment not found", "course_id": exc.course_id},
    )


@app.exception_handler(CompletionNotFound)
async def _completion_not_found(_request: Request, exc: CompletionNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Completion record not found", "lesson_id": exc.lesson_id},
    )


@app.exception_handler(LedgerBusyError)
async def _ledger_busy(_request: Request, exc: LedgerBusyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Progress is being updated concurrently, retry shortly"},
        headers={"Retry-After": "1"},
    )


@app.exception_handler(CatalogUnavailable)
async def _catalog_unavailable(_request: Request, exc: CatalogUnavailable) -> JSONResponse:
    logger.warning("Catalog unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Course catalog unavailable"},
        headers={"Retry-After": "5"},
    )


app.include_router(health_router)
app.include_router(progress_router)
app.include_router(analytics_router)
app.include_router(admin_router)

logger.info(
    "learning-analytics started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
