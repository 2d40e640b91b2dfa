"""HttpCatalogClient against an httpx.MockTransport."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx
import pytest

from learning_analytics.core.errors import CatalogUnavailable
from learning_analytics.services.catalog_client import HttpCatalogClient

_ROUTES: dict[str, tuple[int, object]] = {
    "/lessons/py-l1": (200, {"module_id": "m-py-1", "course_id": "py-101", "category": "programming"}),
    "/lessons/half": (200, {"module_id": "m-py-1"}),
    "/modules/m-py-1/lessons": (200, {"lesson_ids": ["py-l1", "py-l2"]}),
    "/modules/bad/lessons": (200, {"lesson_ids": "py-l1"}),
    "/courses/py-101": (200, {"title": "Python Basics", "category": "programming"}),
    "/courses/py-101/lessons": (200, {"lesson_ids": ["py-l1", "py-l2", "py-l3"]}),
    "/courses/broken": (502, {"detail": "upstream"}),
    "/students/s-1": (200, {"timezone": "Europe/Berlin"}),
    "/students/s-2": (200, {}),
    "/students/s-1/enrollments": (
        200,
        {
            "enrollments": [
                {
                    "course_id": "py-101",
                    "enrolled_at": "2026-03-01T09:00:00+00:00",
                    "target_duration_days": 30,
                }
            ]
        },
    ),
    "/students/s-1/enrollments/py-101": (
        200,
        {"enrolled_at": "2026-03-01T09:00:00+00:00", "target_duration_days": 30},
    ),
    "/students/s-3/enrollments": (200, {"enrollments": [{"course_id": "x"}]}),
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/lessons/garbage":
        return httpx.Response(200, content=b"<html>oops</html>")
    if request.url.path == "/lessons/down":
        raise httpx.ConnectError("connection refused", request=request)
    status, body = _ROUTES.get(request.url.path, (404, {"detail": "not found"}))
    return httpx.Response(status, json=body)


def _run(coro_fn):
    async def go():
        client = HttpCatalogClient(
            "http://catalog.test/", transport=httpx.MockTransport(_handler)
        )
        try:
            return await coro_fn(client)
        finally:
            await client.aclose()

    return asyncio.run(go())


def test_resolve_lesson() -> None:
    location = _run(lambda c: c.resolve_lesson("py-l1"))
    assert location.module_id == "m-py-1"
    assert location.course_id == "py-101"
    assert location.category == "programming"


def test_not_found_is_none() -> None:
    assert _run(lambda c: c.resolve_lesson("nope")) is None
    assert _run(lambda c: c.get_course("nope")) is None
    assert _run(lambda c: c.list_lessons_for_course("nope")) is None
    assert _run(lambda c: c.get_enrollment("s-1", "nope")) is None


def test_lesson_listings() -> None:
    assert _run(lambda c: c.list_lessons_for_module("m-py-1")) == ["py-l1", "py-l2"]
    assert _run(lambda c: c.list_lessons_for_course("py-101")) == ["py-l1", "py-l2", "py-l3"]


def test_course() -> None:
    course = _run(lambda c: c.get_course("py-101"))
    assert course.title == "Python Basics"
    assert course.category == "programming"


def test_enrollments_are_parsed() -> None:
    windows = _run(lambda c: c.list_enrollments("s-1"))
    assert len(windows) == 1
    assert windows[0].course_id == "py-101"
    assert windows[0].enrolled_at == datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
    assert windows[0].target_duration_days == 30

    window = _run(lambda c: c.get_enrollment("s-1", "py-101"))
    assert window.course_id == "py-101"


def test_unknown_student_has_no_enrollments() -> None:
    assert _run(lambda c: c.list_enrollments("ghost")) == []


def test_timezone() -> None:
    assert _run(lambda c: c.get_student_timezone("s-1")) == "Europe/Berlin"
    assert _run(lambda c: c.get_student_timezone("s-2")) is None
    assert _run(lambda c: c.get_student_timezone("ghost")) is None


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.get_course("broken"),
        lambda c: c.resolve_lesson("garbage"),
        lambda c: c.resolve_lesson("down"),
        lambda c: c.resolve_lesson("half"),
        lambda c: c.list_lessons_for_module("bad"),
        lambda c: c.list_enrollments("s-3"),
    ],
    ids=["5xx", "invalid-json", "connect-error", "missing-field", "wrong-type", "bad-enrollment"],
)
def test_failures_raise_catalog_unavailable(call) -> None:
    with pytest.raises(CatalogUnavailable):
        _run(call)
