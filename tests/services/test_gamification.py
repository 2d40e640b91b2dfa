from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from learning_analytics.core.config import EngineConfig
from learning_analytics.models.completion import CompletionRecord, CompletionStatus
from learning_analytics.models.gamification import BadgeAward, PointSource
from learning_analytics.repos.badge_repo import InMemoryBadgeRepo
from learning_analytics.services.gamification import (
    BADGE_RULES,
    BadgeContext,
    GamificationEngine,
    activity_point_events,
    badge_point_events,
    cumulative_points,
    evaluate_badges,
    level_for_points,
    level_threshold,
    total_points,
)
from tests.conftest import NOW


def _done(lesson_id: str, quiz: float | None = None) -> CompletionRecord:
    return CompletionRecord(
        student_id="s-1",
        lesson_id=lesson_id,
        status=CompletionStatus.COMPLETED,
        progress_percentage=100,
        time_spent_minutes=10,
        first_started_at=NOW,
        last_updated_at=NOW,
        best_quiz_score=quiz,
        completed_at=NOW,
    )


def _context(**overrides) -> BadgeContext:
    values = {
        "lessons_completed": 0,
        "courses_completed": 0,
        "current_streak_days": 0,
        "longest_streak_days": 0,
        "categories": 0,
        "activity_points": 0,
    }
    values.update(overrides)
    return BadgeContext(**values)


# ---- levels ----


@pytest.mark.parametrize(
    "points, level",
    [(0, 1), (99, 1), (100, 2), (249, 2), (250, 3), (474, 3), (475, 4)],
)
def test_level_checkpoints(points: int, level: int) -> None:
    assert level_for_points(points).level == level


def test_level_thresholds_grow_geometrically() -> None:
    assert [level_threshold(n) for n in range(1, 5)] == [100, 150, 225, 337]
    assert cumulative_points(1) == 0
    assert cumulative_points(4) == 475


def test_level_progress_within_level() -> None:
    info = level_for_points(175)
    assert info.level == 2
    assert info.points_into_level == 75
    assert info.points_for_next_level == 150
    assert info.level_progress == 0.5


def test_level_is_monotonic_in_points() -> None:
    levels = [level_for_points(p).level for p in range(0, 5000, 7)]
    assert levels == sorted(levels)


def test_flat_multiplier_terminates() -> None:
    info = level_for_points(10**9, base=1, multiplier=1.0)
    assert info.level == 10_000


# ---- points ----


def test_points_from_completions_and_passed_quizzes() -> None:
    config = EngineConfig()
    records = [_done("a", quiz=90), _done("b", quiz=50), _done("c")]
    events = activity_point_events(records, config)

    lessons = [e for e in events if e.source == PointSource.LESSON_COMPLETED]
    quizzes = [e for e in events if e.source == PointSource.QUIZ_PASSED]
    assert [e.source_id for e in lessons] == ["a", "b", "c"]
    assert [e.source_id for e in quizzes] == ["a"]
    assert total_points(events) == 3 * 10 + 20


def test_in_progress_records_earn_nothing() -> None:
    record = CompletionRecord(
        student_id="s-1",
        lesson_id="a",
        status=CompletionStatus.IN_PROGRESS,
        progress_percentage=60,
        time_spent_minutes=10,
        first_started_at=NOW,
        last_updated_at=NOW,
    )
    assert activity_point_events([record], EngineConfig()) == []


def test_point_events_are_deterministic() -> None:
    records = [_done("b", quiz=80), _done("a")]
    config = EngineConfig()
    assert activity_point_events(records, config) == activity_point_events(
        list(reversed(records)), config
    )


def test_retired_badge_is_worth_nothing() -> None:
    awards = [
        BadgeAward("s-1", "first_lesson", NOW),
        BadgeAward("s-1", "retired_badge", NOW),
    ]
    events = badge_point_events(awards)
    assert [e.source_id for e in events] == ["first_lesson"]
    assert events[0].points == 25


# ---- badges ----


def test_badge_rules_have_unique_ids() -> None:
    ids = [r.badge_id for r in BADGE_RULES]
    assert len(ids) == len(set(ids))


@pytest.mark.parametrize(
    "overrides, badge_id",
    [
        ({"lessons_completed": 1}, "first_lesson"),
        ({"courses_completed": 1}, "first_course"),
        ({"courses_completed": 5}, "five_courses"),
        ({"longest_streak_days": 7}, "week_streak"),
        ({"longest_streak_days": 30}, "month_streak"),
        ({"categories": 3}, "explorer"),
        ({"activity_points": 1000}, "point_master"),
    ],
)
def test_each_rule_fires_at_its_threshold(overrides: dict, badge_id: str) -> None:
    assert badge_id in evaluate_badges(_context(**overrides))


def test_nothing_earned_from_empty_context() -> None:
    assert evaluate_badges(_context()) == []


def test_broken_streak_keeps_week_badge_eligible() -> None:
    earned = evaluate_badges(_context(current_streak_days=0, longest_streak_days=8))
    assert "week_streak" in earned


def test_award_badges_is_idempotent_and_keeps_earned_at() -> None:
    engine = GamificationEngine(InMemoryBadgeRepo(), EngineConfig())
    ctx = _context(lessons_completed=1)

    first = asyncio.run(engine.award_badges("s-1", ctx, now=NOW))
    again = asyncio.run(engine.award_badges("s-1", ctx, now=NOW + timedelta(days=1)))

    assert [a.badge_id for a in first] == ["first_lesson"]
    assert again == []
    held = asyncio.run(engine.badge_repo.list_for_student("s-1"))
    assert held == [BadgeAward("s-1", "first_lesson", NOW)]


def test_badges_are_never_revoked() -> None:
    engine = GamificationEngine(InMemoryBadgeRepo(), EngineConfig())
    asyncio.run(engine.award_badges("s-1", _context(longest_streak_days=7), now=NOW))
    profile = asyncio.run(
        engine.build_profile("s-1", [], _context(), now=NOW + timedelta(days=3))
    )
    assert [b.badge_id for b in profile.badges] == ["week_streak"]


def test_profile_total_includes_badge_bonuses_once() -> None:
    engine = GamificationEngine(InMemoryBadgeRepo(), EngineConfig())
    records = [_done("a", quiz=100)]
    ctx = _context(lessons_completed=1, activity_points=30)

    profile = asyncio.run(engine.build_profile("s-1", records, ctx, now=NOW))
    again = asyncio.run(engine.build_profile("s-1", records, ctx, now=NOW))

    # 10 lesson + 20 quiz + 25 first_lesson bonus
    assert profile.total_points == 55
    assert again.total_points == 55
    assert profile.level == 1
    assert profile.points_for_next_level == 100
    assert profile.level_progress == 0.55
