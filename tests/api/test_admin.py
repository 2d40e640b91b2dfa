"""Staff-only endpoints: cross-student reads and the administrative reset."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from learning_analytics.services.catalog_client import InMemoryCatalog
from tests.conftest import auth, enroll, mint_token

_READS = [
    "/v1/admin/students/student-1/courses/py-101",
    "/v1/admin/students/student-1/courses/py-101/modules",
    "/v1/admin/students/student-1/streak",
    "/v1/admin/students/student-1/gamification",
    "/v1/admin/students/student-1/categories",
    "/v1/admin/students/student-1/dashboard",
]


def _complete(client: TestClient, token: str, lesson_id: str) -> None:
    client.post(
        "/v1/progress/completions",
        json={"lesson_id": lesson_id, "progress_percentage": 100, "time_spent_delta_minutes": 10},
        headers=auth(token),
    )


# ---- 401 / 403 ----


@pytest.mark.parametrize("path", _READS)
def test_admin_reads_require_token(client: TestClient, path: str) -> None:
    assert client.get(path).status_code == 401


@pytest.mark.parametrize("path", _READS)
def test_students_cannot_use_admin_reads(client: TestClient, token: str, path: str) -> None:
    resp = client.get(path, headers=auth(token))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Insufficient permissions"


def test_students_cannot_reset(client: TestClient, token: str) -> None:
    resp = client.post("/v1/admin/completions/student-1/py-l1/reset", headers=auth(token))
    assert resp.status_code == 403


@pytest.mark.parametrize("role", ["admin", "instructor"])
def test_staff_roles_are_allowed(client: TestClient, catalog: InMemoryCatalog, role: str) -> None:
    staff = mint_token(username="staff-1", roles=[role])
    resp = client.get("/v1/admin/students/student-1/streak", headers=auth(staff))
    assert resp.status_code == 200


# ---- reads ----


def test_staff_sees_what_the_student_sees(
    client: TestClient, catalog: InMemoryCatalog, token: str, staff_token: str
) -> None:
    enroll(catalog, "student-1", "py-101")
    _complete(client, token, "py-l1")

    mine = client.get("/v1/analytics/dashboard", headers=auth(token)).json()
    staff_view = client.get(
        "/v1/admin/students/student-1/dashboard", headers=auth(staff_token)
    ).json()
    assert staff_view == mine

    progress = client.get(
        "/v1/admin/students/student-1/courses/py-101", headers=auth(staff_token)
    ).json()
    assert progress["progress"]["percentage"] == 25.0


def test_admin_pacing(client: TestClient, catalog: InMemoryCatalog, staff_token: str) -> None:
    enroll(catalog, "student-1", "py-101", days_ago=10, target_duration_days=20)
    resp = client.get(
        "/v1/admin/students/student-1/pacing/py-101", headers=auth(staff_token)
    )
    assert resp.status_code == 200
    assert resp.json()["pacing"]["status"] == "BEHIND"


def test_malformed_student_id_is_422(client: TestClient, staff_token: str) -> None:
    resp = client.get("/v1/admin/students/bad%20id/streak", headers=auth(staff_token))
    assert resp.status_code == 422
    assert resp.json()["field"] == "student_id"


# ---- reset ----


def test_reset_zeroes_the_record(
    client: TestClient, catalog: InMemoryCatalog, token: str, staff_token: str
) -> None:
    _complete(client, token, "ux-l1")
    before = client.get("/v1/progress/courses/ux-101", headers=auth(token)).json()

    resp = client.post(
        "/v1/admin/completions/student-1/ux-l1/reset", headers=auth(staff_token)
    )

    assert resp.status_code == 200
    record = resp.json()
    assert record["status"] == "NOT_STARTED"
    assert record["progress_percentage"] == 0
    assert record["completed_at"] is None

    # The reset invalidated the cached course progress.
    after = client.get("/v1/progress/courses/ux-101", headers=auth(token)).json()
    assert before["progress"]["percentage"] == 100.0
    assert after["progress"]["percentage"] == 0.0


def test_reset_keeps_earned_badges(
    client: TestClient, catalog: InMemoryCatalog, token: str, staff_token: str
) -> None:
    _complete(client, token, "ux-l1")
    client.post("/v1/admin/completions/student-1/ux-l1/reset", headers=auth(staff_token))

    profile = client.get("/v1/analytics/gamification", headers=auth(token)).json()
    assert "first_lesson" in [b["badge_id"] for b in profile["gamification"]["badges"]]


def test_reset_of_unknown_record_is_404(client: TestClient, staff_token: str) -> None:
    resp = client.post(
        "/v1/admin/completions/student-1/never-seen/reset", headers=auth(staff_token)
    )
    assert resp.status_code == 404
    assert resp.json()["lesson_id"] == "never-seen"
