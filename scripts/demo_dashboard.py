"""Demo: a student's week of lessons, then their dashboard, via TestClient.

Run with:
    python scripts/demo_dashboard.py

Uses the in-memory catalog and ledger (no DATABASE_URL / CATALOG_URL).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from learning_analytics.main import app
from learning_analytics.services import engine, token_service

STUDENT = "demo-student"


def main() -> None:
    client = TestClient(app)
    now = datetime.now(UTC)

    # ── Seed the catalog ────────────────────────────────────────────
    catalog = engine.catalog
    catalog.add_course(
        "py-101",
        title="Python Basics",
        category="programming",
        modules={"m-syntax": ["py-vars", "py-loops"], "m-funcs": ["py-defs", "py-scope"]},
    )
    catalog.add_course(
        "ds-201",
        title="Data Science",
        category="data",
        modules={"m-pandas": ["ds-frames", "ds-groupby", "ds-merge"]},
    )
    catalog.enroll(STUDENT, "py-101", enrolled_at=now - timedelta(days=7), target_duration_days=14)
    catalog.enroll(STUDENT, "ds-201", enrolled_at=now - timedelta(days=2), target_duration_days=30)

    headers = {"Authorization": f"Bearer {token_service.create_access_token(sub=STUDENT)}"}

    # ── Step 1: three consecutive days of study ─────────────────────
    lessons = [("py-vars", 3, 90), ("py-loops", 2, 75), ("ds-frames", 1, None), ("py-defs", 0, 60)]
    for lesson_id, days_ago, quiz in lessons:
        r = client.post(
            "/v1/progress/completions",
            json={
                "lesson_id": lesson_id,
                "progress_percentage": 100,
                "time_spent_delta_minutes": 25,
                "quiz_score": quiz,
                "occurred_at": (now - timedelta(days=days_ago)).isoformat(),
            },
            headers=headers,
        )
        print(f"1. POST completion {lesson_id:<10} → {r.status_code}")

    # ── Step 2: a report for a lesson the catalog does not know ─────
    r = client.post(
        "/v1/progress/completions",
        json={"lesson_id": "py-draft", "progress_percentage": 30},
        headers=headers,
    )
    print(f"2. POST completion py-draft   → {r.status_code}  warnings={r.json()['warnings']}")

    # ── Step 3: a rejected report ───────────────────────────────────
    r = client.post(
        "/v1/progress/completions",
        json={"lesson_id": "py-vars", "progress_percentage": 100, "time_spent_delta_minutes": -5},
        headers=headers,
    )
    print(f"3. POST negative delta        → {r.status_code}  {r.json()}")

    # ── Step 4: the dashboard ───────────────────────────────────────
    r = client.get("/v1/analytics/dashboard", headers=headers)
    body = r.json()
    print(f"4. GET  dashboard             → {r.status_code}")
    for course in body["courses"]:
        pacing = course["pacing"]
        print(
            f"     {course['title']:<15} {course['progress']['percentage']:>6.2f}%  "
            f"expected {pacing['expected_percentage']:>6.2f}%  {pacing['status']}"
        )
    streak = body["streak"]
    game = body["gamification"]
    print(f"     streak: {streak['current_streak_days']} days (longest {streak['longest_streak_days']})")
    print(
        f"     level {game['level']}  {game['total_points']} pts  "
        f"badges={[b['badge_id'] for b in game['badges']]}"
    )
    for category in body["categories"]:
        print(f"     {category['category']:<12} avg {category['average_progress']:.2f}%")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
