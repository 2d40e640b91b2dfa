from __future__ import annotations

import asyncio

from learning_analytics.models.analytics import DerivedCourseProgress
from learning_analytics.models.completion import CompletionRecord, CompletionStatus
from learning_analytics.models.warnings import WarningCode
from learning_analytics.services.catalog_client import InMemoryCatalog
from learning_analytics.services.category_performance import (
    CategoryAggregator,
    CourseRollup,
    summarize_category,
)
from learning_analytics.services.hierarchy import HierarchyResolver
from tests.conftest import NOW, enroll, seed_catalog


def _done(lesson_id: str, quiz: float | None = None, minutes: float = 10) -> CompletionRecord:
    return CompletionRecord(
        student_id="s-1",
        lesson_id=lesson_id,
        status=CompletionStatus.COMPLETED,
        progress_percentage=100,
        time_spent_minutes=minutes,
        first_started_at=NOW,
        last_updated_at=NOW,
        best_quiz_score=quiz,
        completed_at=NOW,
    )


def _rollup(category: str, completed: int, total: int, scores=()) -> CourseRollup:
    return CourseRollup(
        category=category,
        progress=DerivedCourseProgress(
            student_id="s-1",
            course_id=f"{category}-{total}",
            completed_lessons=completed,
            total_lessons=total,
            percentage=round(completed / total * 100, 2),
            total_time_spent_minutes=completed * 10,
        ),
        quiz_scores=tuple(scores),
    )


def test_average_is_unweighted_across_courses() -> None:
    # Lesson-weighted would be 26/45 = 57.78.
    small = _rollup("x", 2, 5)
    big = _rollup("x", 24, 40)
    summary = summarize_category("s-1", "x", [small, big])
    assert small.progress.percentage == 40.0
    assert big.progress.percentage == 60.0
    assert summary.average_progress == 50.0
    assert summary.total_courses == 2
    assert summary.completed_courses == 0


def test_average_score_is_none_without_quizzes() -> None:
    summary = summarize_category("s-1", "x", [_rollup("x", 1, 2)])
    assert summary.average_score is None


def test_average_score_over_all_quizzes_in_category() -> None:
    summary = summarize_category(
        "s-1", "x", [_rollup("x", 1, 1, scores=[80, 90]), _rollup("x", 1, 2, scores=[70])]
    )
    assert summary.average_score == 80.0
    assert summary.completed_courses == 1


def test_categories_from_enrollments() -> None:
    catalog = seed_catalog(InMemoryCatalog())
    enroll(catalog, "s-1", "py-101")
    enroll(catalog, "s-1", "ux-101")
    aggregator = CategoryAggregator(HierarchyResolver(catalog))
    records = [_done("py-l1", quiz=60), _done("py-l2", quiz=80), _done("ux-l1"), _done("ds-l1")]

    categories, warnings = asyncio.run(
        aggregator.compute_category_performance("s-1", records)
    )

    assert warnings == ()
    # ds-201 is not enrolled, so "data" does not appear.
    assert [c.category for c in categories] == ["design", "programming"]
    design, programming = categories
    assert design.average_progress == 100.0
    assert design.completed_courses == 1
    assert design.average_score is None
    assert programming.average_progress == 50.0
    assert programming.total_study_time_minutes == 20
    assert programming.average_score == 70.0


def test_unresolvable_enrolled_course_is_skipped_with_warning() -> None:
    catalog = seed_catalog(InMemoryCatalog())
    enroll(catalog, "s-1", "py-101")
    enroll(catalog, "s-1", "retired-course")
    aggregator = CategoryAggregator(HierarchyResolver(catalog))

    categories, warnings = asyncio.run(
        aggregator.compute_category_performance("s-1", [_done("py-l1")])
    )

    assert [c.category for c in categories] == ["programming"]
    assert [(w.code, w.entity_id) for w in warnings] == [
        (WarningCode.DANGLING_REFERENCE, "retired-course")
    ]


def test_no_enrollments_means_no_categories() -> None:
    aggregator = CategoryAggregator(HierarchyResolver(seed_catalog(InMemoryCatalog())))
    categories, warnings = asyncio.run(
        aggregator.compute_category_performance("s-1", [_done("py-l1")])
    )
    assert categories == []
    assert warnings == ()
