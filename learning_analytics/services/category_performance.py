"""Per-category rollups of a student's enrolled courses.

average_progress is the plain mean of course percentages: a 4-lesson
course at 40 % and a 40-lesson course at 60 % average to 50, not to the
lesson-weighted 58.18.  Categories without an enrollment do not appear.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from learning_analytics.core.metrics import DANGLING_REFERENCES
from learning_analytics.models.analytics import CategoryPerformance, DerivedCourseProgress
from learning_analytics.models.catalog import EnrollmentWindow
from learning_analytics.models.completion import CompletionRecord
from learning_analytics.models.warnings import AnalyticsWarning, dedupe_warnings
from learning_analytics.services.hierarchy import HierarchyResolver
from learning_analytics.services.progress_aggregator import course_progress_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CourseRollup:
    """One enrolled course, resolved: the input row of a category group."""

    category: str
    progress: DerivedCourseProgress
    quiz_scores: tuple[float, ...]


def summarize_category(
    student_id: str, category: str, courses: list[CourseRollup]
) -> CategoryPerformance:
    percentages = [c.progress.percentage for c in courses]
    scores = [s for c in courses for s in c.quiz_scores]
    return CategoryPerformance(
        student_id=student_id,
        category=category,
        average_progress=round(sum(percentages) / len(percentages), 2) if percentages else 0.0,
        completed_courses=sum(1 for p in percentages if p >= 100),
        total_courses=len(courses),
        total_study_time_minutes=round(
            sum(c.progress.total_time_spent_minutes for c in courses), 2
        ),
        average_score=round(sum(scores) / len(scores), 2) if scores else None,
    )


def group_by_category(
    student_id: str, courses: list[CourseRollup]
) -> list[CategoryPerformance]:
    groups: dict[str, list[CourseRollup]] = defaultdict(list)
    for course in courses:
        groups[course.category].append(course)
    return [
        summarize_category(student_id, category, groups[category])
        for category in sorted(groups)
    ]


class CategoryAggregator:
    def __init__(self, resolver: HierarchyResolver) -> None:
        self._resolver = resolver

    async def compute_category_performance(
        self,
        student_id: str,
        records: list[CompletionRecord],
        enrollments: list[EnrollmentWindow] | None = None,
    ) -> tuple[list[CategoryPerformance], tuple[AnalyticsWarning, ...]]:
        if enrollments is None:
            enrollments = await self._resolver.enrollments(student_id)
        rollups: list[CourseRollup] = []
        warnings: list[AnalyticsWarning] = []

        for enrollment in enrollments:
            course = await self._resolver.course(enrollment.course_id)
            lessons = await self._resolver.course_lessons(enrollment.course_id)
            if course is None or lessons is None:
                DANGLING_REFERENCES.labels(entity_type="course").inc()
                logger.warning(
                    "Enrolled course not in catalog, skipped: student=%s course=%s",
                    student_id,
                    enrollment.course_id,
                    extra={
                        "student_id": student_id,
                        "course_id": enrollment.course_id,
                        "warning_code": "DANGLING_REFERENCE",
                    },
                )
                warnings.append(AnalyticsWarning.dangling("course", enrollment.course_id))
                continue

            lesson_set = set(lessons)
            rollups.append(
                CourseRollup(
                    category=course.category,
                    progress=course_progress_from(
                        student_id, enrollment.course_id, lessons, records
                    ),
                    quiz_scores=tuple(
                        r.best_quiz_score
                        for r in records
                        if r.lesson_id in lesson_set and r.best_quiz_score is not None
                    ),
                )
            )

        return group_by_category(student_id, rollups), dedupe_warnings(warnings)
