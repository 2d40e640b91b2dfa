"""Read-through cache for derived read models.

Course progress and category rollups are pure functions of the ledger and
the catalog, so they can be recomputed at any time.  Caching them is only
about not recomputing on every dashboard refresh.

Two strategies cover each other:

  1. TTL: every entry expires after ANALYTICS_CACHE_TTL_SECONDS.  This
     bounds staleness caused by catalog changes, which this service is
     never told about.

  2. Explicit invalidation: a completion write bumps the student's
     generation counter (``analytics-gen:{student_id}``).  Entries live
     under ``analytics:{student_id}:{generation}:...``, so a read that
     started before the write stores its result under the old generation
     and nobody reads it again.  Old generations are then deleted.

The cache is an optimisation, never a dependency: a Redis error is logged
and counted, a failed lookup is a miss, a failed store or invalidation is
skipped.  A write that reached the ledger is never failed by the cache.

Values are JSON strings; callers own serialization.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from learning_analytics.core.metrics import CACHE_OPERATIONS
from learning_analytics.db.redis import redis_pool

logger = logging.getLogger(__name__)

# Socket errors can escape redis-py while a connection is being set up.
_CACHE_ERRORS = (RedisError, OSError)

# Outlives any entry, so an expired counter can restart at 0 safely.
GENERATION_TTL_SECONDS = 24 * 3600


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Atomically add 1 to a counter and (re)arm its TTL."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g., 'analytics:s-1:*')."""
        ...


class InMemoryCacheService:
    """In-process cache for dev and tests.

    Expiry is checked lazily on read against ``clock`` (time.monotonic by
    default); tests pass a fake clock to step past the TTL.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        value = int(await self.get(key) or 0) + 1
        await self.set(key, str(value), ttl_seconds)
        return value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        full_key = f"{self._PREFIX}{key}"
        # MULTI/EXEC: a counter without a TTL would never be cleaned up.
        async with self._redis.pipeline(transaction=True) as pipe:
            value, _ = await pipe.incr(full_key).expire(full_key, ttl_seconds).execute()
        return int(value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk.
        # Keys added mid-scan may be missed; the TTL catches those.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


def analytics_key_prefix(student_id: str) -> str:
    return f"analytics:{student_id}:"


def generation_key(student_id: str) -> str:
    # Outside analytics:{student_id}:* so invalidation never deletes it.
    return f"analytics-gen:{student_id}"


def entry_key(student_id: str, generation: int, name: str) -> str:
    return f"{analytics_key_prefix(student_id)}{generation}:{name}"


def course_progress_name(course_id: str) -> str:
    return f"course:{course_id}"


CATEGORIES_NAME = "categories"


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()


@dataclass(frozen=True, slots=True)
class CacheSlot:
    """Result of a lookup.

    ``key`` is where a freshly computed value belongs: the entry of the
    generation that was current when the lookup started.  None means the
    cache could not be reached; compute and skip the store.
    """

    key: str | None
    value: str | None


def _cache_failed(action: str, student_id: str, exc: Exception) -> None:
    CACHE_OPERATIONS.labels(operation="error").inc()
    logger.warning(
        "Analytics cache %s failed for student=%s: %s",
        action,
        student_id,
        exc,
        extra={"student_id": student_id},
    )


async def lookup(student_id: str, name: str) -> CacheSlot:
    try:
        generation = int(await cache_service.get(generation_key(student_id)) or 0)
        key = entry_key(student_id, generation, name)
        value = await cache_service.get(key)
    except _CACHE_ERRORS as e:
        _cache_failed("lookup", student_id, e)
        return CacheSlot(key=None, value=None)

    CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
    return CacheSlot(key=key, value=value)


async def store(student_id: str, slot: CacheSlot, value: str, ttl_seconds: int) -> None:
    if slot.key is None:
        return
    try:
        await cache_service.set(slot.key, value, ttl_seconds)
    except _CACHE_ERRORS as e:
        _cache_failed("store", student_id, e)


async def invalidate_student(student_id: str) -> None:
    """Retire every cached read model of one student after a ledger write.

    Bumping the generation is what makes later reads fresh; deleting the
    old entries only frees memory.
    """
    try:
        await cache_service.incr(generation_key(student_id), GENERATION_TTL_SECONDS)
        await cache_service.delete_pattern(f"{analytics_key_prefix(student_id)}*")
    except _CACHE_ERRORS as e:
        _cache_failed("invalidation", student_id, e)
