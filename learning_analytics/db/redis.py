"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a real connection pool is
created; when it is None (local dev, tests) the analytics cache falls
back to an in-process dict and no Redis server is needed.

Redis only ever holds derived read models (course progress, category
breakdowns) with a short TTL.  Losing it costs a recomputation, never
data: the completion ledger lives in PostgreSQL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from learning_analytics.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirrors lifespan_db().

    A failed ping is logged and startup continues: every cache read
    degrades to a recomputation.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, analytics cache is in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
