"""Hierarchy resolver: lesson -> module -> course -> category lookups.

Every aggregation walks the catalog hierarchy, and a dashboard render
touches the same courses over and over.  The resolver sits in front of
the CatalogClient as a small read-through cache:

  - positive entries live for HIERARCHY_CACHE_TTL_SECONDS
  - UNRESOLVABLE entries (not found, timeout, catalog error) live for the
    shorter HIERARCHY_NEGATIVE_TTL_SECONDS, so a lesson that was just
    published shows up quickly
  - at most HIERARCHY_CACHE_MAX_ENTRIES entries; a full map drops expired
    entries first, then the oldest writes

Each catalog call is bounded by asyncio.wait_for.  A slow or broken
catalog turns into "unresolvable", never into an exception: callers see
None and emit a dangling-reference warning.

Per-student data (enrollments, timezone) is NOT cached here.  Those calls
go straight through with the same timeout and raise CatalogUnavailable on
failure, because the caller must be able to tell "no enrollment" apart
from "catalog down".
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from learning_analytics.core.errors import CatalogUnavailable
from learning_analytics.core.metrics import (
    CATALOG_LOOKUP_FAILURES,
    HIERARCHY_CACHE_OPERATIONS,
)
from learning_analytics.models.catalog import (
    CourseRef,
    EnrollmentWindow,
    HierarchyRef,
    LessonLocation,
)
from learning_analytics.services.catalog_client import CatalogClient

logger = logging.getLogger(__name__)


class _Unresolvable:
    def __repr__(self) -> str:
        return "UNRESOLVABLE"


UNRESOLVABLE: Any = _Unresolvable()


class HierarchyResolver:
    def __init__(
        self,
        catalog: CatalogClient,
        *,
        ttl_seconds: float = 300.0,
        negative_ttl_seconds: float = 30.0,
        timeout_seconds: float = 2.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.catalog = catalog
        self._ttl = ttl_seconds
        self._negative_ttl = negative_ttl_seconds
        self._timeout = timeout_seconds
        self._clock = clock
        self._max_entries = max_entries
        # Insertion-ordered: the first key is the oldest write.
        self._entries: dict[tuple[str, str], tuple[Any, float]] = {}

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # -- cached hierarchy lookups ------------------------------------------

    async def lesson_location(self, lesson_id: str) -> LessonLocation | None:
        return await self._cached(
            "lesson", lesson_id, lambda: self.catalog.resolve_lesson(lesson_id)
        )

    async def module_lessons(self, module_id: str) -> tuple[str, ...] | None:
        return await self._cached(
            "module", module_id, lambda: _as_tuple(self.catalog.list_lessons_for_module(module_id))
        )

    async def course_lessons(self, course_id: str) -> tuple[str, ...] | None:
        return await self._cached(
            "course_lessons",
            course_id,
            lambda: _as_tuple(self.catalog.list_lessons_for_course(course_id)),
        )

    async def course(self, course_id: str) -> CourseRef | None:
        return await self._cached(
            "course", course_id, lambda: self.catalog.get_course(course_id)
        )

    async def resolve_lesson(self, lesson_id: str) -> HierarchyRef | None:
        """Full hierarchy of a lesson, with lesson totals for its module and course.

        None when the lesson itself cannot be resolved.  If only the module
        or course listing fails, the matching total is reported as 0.
        """
        location = await self.lesson_location(lesson_id)
        if location is None:
            return None
        module_lessons = await self.module_lessons(location.module_id) or ()
        course_lessons = await self.course_lessons(location.course_id) or ()
        return HierarchyRef(
            lesson_id=lesson_id,
            module_id=location.module_id,
            course_id=location.course_id,
            category=location.category,
            course_total_lessons=len(set(course_lessons)),
            module_total_lessons=len(set(module_lessons)),
        )

    # -- uncached per-student lookups --------------------------------------

    async def enrollment(self, student_id: str, course_id: str) -> EnrollmentWindow | None:
        return await self._direct(
            "enrollment", lambda: self.catalog.get_enrollment(student_id, course_id)
        )

    async def enrollments(self, student_id: str) -> list[EnrollmentWindow]:
        return await self._direct(
            "enrollments", lambda: self.catalog.list_enrollments(student_id)
        )

    async def student_timezone(self, student_id: str) -> str | None:
        return await self._direct(
            "timezone", lambda: self.catalog.get_student_timezone(student_id)
        )

    # -- internals ---------------------------------------------------------

    async def _cached(
        self, kind: str, ident: str, loader: Callable[[], Awaitable[Any]]
    ) -> Any:
        key = (kind, ident)
        entry = self._entries.get(key)
        if entry is not None and entry[1] > self._clock():
            HIERARCHY_CACHE_OPERATIONS.labels(result="hit").inc()
            value = entry[0]
            return None if value is UNRESOLVABLE else value

        HIERARCHY_CACHE_OPERATIONS.labels(result="miss").inc()
        try:
            value = await asyncio.wait_for(loader(), timeout=self._timeout)
        except TimeoutError:
            CATALOG_LOOKUP_FAILURES.labels(reason="timeout").inc()
            logger.warning("Catalog lookup timed out: %s=%s", kind, ident)
            value = None
        except CatalogUnavailable as e:
            CATALOG_LOOKUP_FAILURES.labels(reason="error").inc()
            logger.warning("Catalog lookup failed: %s=%s: %s", kind, ident, e)
            value = None

        if value is None:
            self._store(key, UNRESOLVABLE, self._negative_ttl)
        else:
            self._store(key, value, self._ttl)
        return value

    def _store(self, key: tuple[str, str], value: Any, ttl: float) -> None:
        """Insert at the young end, evicting when the map is full.

        Expired entries go first; if every entry is still live the oldest
        write is dropped.  Unknown ids arrive from clients, so the map must
        not grow with them.
        """
        now = self._clock()
        self._entries.pop(key, None)
        if len(self._entries) >= self._max_entries:
            for stale in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
                del self._entries[stale]
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (value, now + ttl)

    async def _direct(self, kind: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await asyncio.wait_for(loader(), timeout=self._timeout)
        except TimeoutError as e:
            CATALOG_LOOKUP_FAILURES.labels(reason="timeout").inc()
            raise CatalogUnavailable(f"catalog {kind} lookup timed out") from e
        except CatalogUnavailable:
            CATALOG_LOOKUP_FAILURES.labels(reason="error").inc()
            raise


async def _as_tuple(result: Awaitable[list[str] | None]) -> tuple[str, ...] | None:
    lessons = await result
    return None if lessons is None else tuple(dict.fromkeys(lessons))
