"""Clients for the content catalog.

The catalog owns courses, modules, lessons and enrollments.  This service
only reads from it, through the CatalogClient protocol:

  InMemoryCatalog    dev and tests; seeded with add_course()/enroll()
  HttpCatalogClient  JSON over HTTP (httpx) against CATALOG_URL

"Not found" is a normal answer (None), not an exception.  Transport
failures and malformed payloads raise CatalogUnavailable; the hierarchy
resolver decides what that means for a read.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

import httpx

from learning_analytics.core.errors import CatalogUnavailable
from learning_analytics.models.catalog import CourseRef, EnrollmentWindow, LessonLocation

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    async def resolve_lesson(self, lesson_id: str) -> LessonLocation | None: ...
    async def list_lessons_for_module(self, module_id: str) -> list[str] | None: ...
    async def list_lessons_for_course(self, course_id: str) -> list[str] | None: ...
    async def get_course(self, course_id: str) -> CourseRef | None: ...
    async def get_enrollment(
        self, student_id: str, course_id: str
    ) -> EnrollmentWindow | None: ...
    async def list_enrollments(self, student_id: str) -> list[EnrollmentWindow]: ...
    async def get_student_timezone(self, student_id: str) -> str | None: ...


class InMemoryCatalog:
    """Seedable catalog for dev and tests.

    Lessons are listed in the order they were added.  remove_lesson()
    simulates a course edit that drops a lesson, which is how dangling
    references show up in practice.
    """

    def __init__(self) -> None:
        self._courses: dict[str, CourseRef] = {}
        self._course_modules: dict[str, list[str]] = {}
        self._module_lessons: dict[str, list[str]] = {}
        self._lesson_module: dict[str, str] = {}
        self._module_course: dict[str, str] = {}
        self._enrollments: dict[tuple[str, str], EnrollmentWindow] = {}
        self._timezones: dict[str, str] = {}

    def add_course(
        self,
        course_id: str,
        *,
        category: str,
        modules: dict[str, list[str]],
        title: str | None = None,
    ) -> CourseRef:
        course = CourseRef(course_id=course_id, title=title or course_id, category=category)
        self._courses[course_id] = course
        self._course_modules[course_id] = list(modules)
        for module_id, lesson_ids in modules.items():
            self._module_course[module_id] = course_id
            self._module_lessons[module_id] = list(lesson_ids)
            for lesson_id in lesson_ids:
                self._lesson_module[lesson_id] = module_id
        return course

    def remove_lesson(self, lesson_id: str) -> None:
        module_id = self._lesson_module.pop(lesson_id, None)
        if module_id is not None:
            self._module_lessons[module_id].remove(lesson_id)

    def enroll(
        self,
        student_id: str,
        course_id: str,
        *,
        enrolled_at: datetime,
        target_duration_days: int,
    ) -> EnrollmentWindow:
        window = EnrollmentWindow(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
            target_duration_days=target_duration_days,
        )
        self._enrollments[(student_id, course_id)] = window
        return window

    def set_timezone(self, student_id: str, tz_name: str) -> None:
        self._timezones[student_id] = tz_name

    def clear(self) -> None:
        self._courses.clear()
        self._course_modules.clear()
        self._module_lessons.clear()
        self._lesson_module.clear()
        self._module_course.clear()
        self._enrollments.clear()
        self._timezones.clear()

    async def resolve_lesson(self, lesson_id: str) -> LessonLocation | None:
        module_id = self._lesson_module.get(lesson_id)
        if module_id is None:
            return None
        course_id = self._module_course[module_id]
        return LessonLocation(
            lesson_id=lesson_id,
            module_id=module_id,
            course_id=course_id,
            category=self._courses[course_id].category,
        )

    async def list_lessons_for_module(self, module_id: str) -> list[str] | None:
        lessons = self._module_lessons.get(module_id)
        return None if lessons is None else list(lessons)

    async def list_lessons_for_course(self, course_id: str) -> list[str] | None:
        module_ids = self._course_modules.get(course_id)
        if module_ids is None:
            return None
        return [lid for mid in module_ids for lid in self._module_lessons[mid]]

    async def get_course(self, course_id: str) -> CourseRef | None:
        return self._courses.get(course_id)

    async def get_enrollment(
        self, student_id: str, course_id: str
    ) -> EnrollmentWindow | None:
        return self._enrollments.get((student_id, course_id))

    async def list_enrollments(self, student_id: str) -> list[EnrollmentWindow]:
        return sorted(
            (e for (sid, _), e in self._enrollments.items() if sid == student_id),
            key=lambda e: e.course_id,
        )

    async def get_student_timezone(self, student_id: str) -> str | None:
        return self._timezones.get(student_id)


class HttpCatalogClient:
    """Catalog client over HTTP.

    Endpoints (JSON):
      GET /lessons/{lesson_id}                    -> {module_id, course_id, category}
      GET /modules/{module_id}/lessons            -> {lesson_ids: [...]}
      GET /courses/{course_id}                    -> {title, category}
      GET /courses/{course_id}/lessons            -> {lesson_ids: [...]}
      GET /students/{student_id}/enrollments      -> {enrollments: [...]}
      GET /students/{student_id}/enrollments/{id} -> {enrolled_at, target_duration_days}
      GET /students/{student_id}                  -> {timezone}

    A 404 maps to None.  Timeouts are enforced by the caller
    (asyncio.wait_for in the hierarchy resolver); the httpx timeout is a
    backstop for calls made outside it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str) -> dict | None:
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as e:
            raise CatalogUnavailable(f"GET {path} failed: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise CatalogUnavailable(f"GET {path} returned {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise CatalogUnavailable(f"GET {path} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise CatalogUnavailable(f"GET {path} returned {type(body).__name__}")
        return body

    async def resolve_lesson(self, lesson_id: str) -> LessonLocation | None:
        body = await self._get_json(f"/lessons/{lesson_id}")
        if body is None:
            return None
        try:
            return LessonLocation(
                lesson_id=lesson_id,
                module_id=str(body["module_id"]),
                course_id=str(body["course_id"]),
                category=str(body["category"]),
            )
        except KeyError as e:
            raise CatalogUnavailable(f"lesson {lesson_id}: missing {e}") from e

    async def list_lessons_for_module(self, module_id: str) -> list[str] | None:
        body = await self._get_json(f"/modules/{module_id}/lessons")
        return None if body is None else _lesson_ids(body, f"module {module_id}")

    async def list_lessons_for_course(self, course_id: str) -> list[str] | None:
        body = await self._get_json(f"/courses/{course_id}/lessons")
        return None if body is None else _lesson_ids(body, f"course {course_id}")

    async def get_course(self, course_id: str) -> CourseRef | None:
        body = await self._get_json(f"/courses/{course_id}")
        if body is None:
            return None
        try:
            return CourseRef(
                course_id=course_id,
                title=str(body.get("title") or course_id),
                category=str(body["category"]),
            )
        except KeyError as e:
            raise CatalogUnavailable(f"course {course_id}: missing {e}") from e

    async def get_enrollment(
        self, student_id: str, course_id: str
    ) -> EnrollmentWindow | None:
        body = await self._get_json(f"/students/{student_id}/enrollments/{course_id}")
        if body is None:
            return None
        return _enrollment(student_id, {"course_id": course_id, **body})

    async def list_enrollments(self, student_id: str) -> list[EnrollmentWindow]:
        body = await self._get_json(f"/students/{student_id}/enrollments")
        if body is None:
            return []
        items = body.get("enrollments")
        if not isinstance(items, list):
            raise CatalogUnavailable(f"student {student_id}: enrollments is not a list")
        return [_enrollment(student_id, item) for item in items]

    async def get_student_timezone(self, student_id: str) -> str | None:
        body = await self._get_json(f"/students/{student_id}")
        if body is None:
            return None
        tz_name = body.get("timezone")
        return tz_name if isinstance(tz_name, str) and tz_name else None


def _lesson_ids(body: dict, what: str) -> list[str]:
    ids = body.get("lesson_ids")
    if not isinstance(ids, list):
        raise CatalogUnavailable(f"{what}: lesson_ids is not a list")
    return [str(i) for i in ids]


def _enrollment(student_id: str, item: dict) -> EnrollmentWindow:
    try:
        enrolled_at = datetime.fromisoformat(item["enrolled_at"])
        return EnrollmentWindow(
            student_id=student_id,
            course_id=str(item["course_id"]),
            enrolled_at=enrolled_at,
            target_duration_days=int(item["target_duration_days"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogUnavailable(f"malformed enrollment for {student_id}: {e}") from e
