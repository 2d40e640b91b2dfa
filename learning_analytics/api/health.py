"""Operational endpoints: liveness, readiness, Prometheus scrape.

  /health  is the process alive?  Always 200; the body says which
           dependencies are degraded.  A 503 here would make the
           orchestrator restart a container that may only be waiting
           for Redis.
  /ready   can this instance serve traffic?  503 when the configured
           database does not answer, because the ledger lives there.
           Redis and the catalog are not critical: reads recompute
           without the cache and degrade to warnings without the catalog.
  /metrics text exposition for Prometheus.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from learning_analytics.db.engine import engine, ping_db
from learning_analytics.db.redis import redis_pool
from learning_analytics.services.engine import catalog_mode

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_ok() -> bool:
    try:
        return await ping_db()
    except (SQLAlchemyError, OSError):
        logger.exception("Database ping failed")
        return False


@router.get("/health")
async def health() -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            logger.exception("Redis ping failed")
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    if engine is not None:
        if await _database_ok():
            checks["database"] = "ok"
        else:
            checks["database"] = "degraded"
            overall = "degraded"
    else:
        checks["database"] = "not_configured"

    checks["catalog"] = catalog_mode()

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if engine is not None and not await _database_ok():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/metrics", include_in_schema=False, tags=["observability"])
async def metrics() -> Response:
    """Prometheus text exposition format, not JSON."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
