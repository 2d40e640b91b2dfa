"""Course and module progress, derived from ledger records on every read.

The lesson set of a course (or module) is whatever the catalog lists
*now*.  Completed lessons are counted inside that set only, so a lesson
removed from a course stops counting toward it, and a lesson listed
twice still counts once.

Time spent is the exception: records whose hierarchy snapshot points at
the course keep contributing their minutes after the lesson is removed.
The minutes were really spent; only the completion share moves.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from learning_analytics.core.metrics import DANGLING_REFERENCES
from learning_analytics.models.analytics import DerivedCourseProgress, ModuleProgress
from learning_analytics.models.completion import CompletionRecord
from learning_analytics.models.warnings import AnalyticsWarning, dedupe_warnings
from learning_analytics.services.hierarchy import HierarchyResolver

logger = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


def _rollup(
    lesson_ids: Iterable[str],
    records: Iterable[CompletionRecord],
    *,
    snapshot_matches,
) -> tuple[int, int, float]:
    """Return (completed, total, minutes) for one lesson set."""
    lesson_set = set(lesson_ids)
    completed = 0
    minutes = 0.0
    for record in records:
        if record.lesson_id in lesson_set:
            if record.is_completed:
                completed += 1
            minutes += record.time_spent_minutes
        elif snapshot_matches(record):
            minutes += record.time_spent_minutes
    return completed, len(lesson_set), round(minutes, 2)


def course_progress_from(
    student_id: str,
    course_id: str,
    lesson_ids: Iterable[str],
    records: Iterable[CompletionRecord],
) -> DerivedCourseProgress:
    completed, total, minutes = _rollup(
        lesson_ids, records, snapshot_matches=lambda r: r.course_id == course_id
    )
    return DerivedCourseProgress(
        student_id=student_id,
        course_id=course_id,
        completed_lessons=completed,
        total_lessons=total,
        percentage=completion_percentage(completed, total),
        total_time_spent_minutes=minutes,
    )


def module_progress_from(
    student_id: str,
    module_id: str,
    lesson_ids: Iterable[str],
    records: Iterable[CompletionRecord],
) -> ModuleProgress:
    completed, total, minutes = _rollup(
        lesson_ids, records, snapshot_matches=lambda r: r.module_id == module_id
    )
    return ModuleProgress(
        student_id=student_id,
        module_id=module_id,
        completed_lessons=completed,
        total_lessons=total,
        percentage=completion_percentage(completed, total),
        total_time_spent_minutes=minutes,
    )


def _dangling(entity_type: str, entity_id: str, student_id: str) -> AnalyticsWarning:
    DANGLING_REFERENCES.labels(entity_type=entity_type).inc()
    logger.warning(
        "%s %s not in catalog, counted as empty",
        entity_type,
        entity_id,
        extra={"student_id": student_id, "warning_code": "DANGLING_REFERENCE"},
    )
    return AnalyticsWarning.dangling(entity_type, entity_id)


class ProgressAggregator:
    def __init__(self, resolver: HierarchyResolver) -> None:
        self._resolver = resolver

    async def compute_course_progress(
        self,
        student_id: str,
        course_id: str,
        records: list[CompletionRecord],
    ) -> tuple[DerivedCourseProgress, tuple[AnalyticsWarning, ...]]:
        lessons = await self._resolver.course_lessons(course_id)
        warnings: list[AnalyticsWarning] = []
        if lessons is None:
            warnings.append(_dangling("course", course_id, student_id))
            lessons = ()
        progress = course_progress_from(student_id, course_id, lessons, records)
        return progress, dedupe_warnings(warnings)

    async def compute_module_progress(
        self,
        student_id: str,
        module_id: str,
        records: list[CompletionRecord],
    ) -> tuple[ModuleProgress, tuple[AnalyticsWarning, ...]]:
        lessons = await self._resolver.module_lessons(module_id)
        warnings: list[AnalyticsWarning] = []
        if lessons is None:
            warnings.append(_dangling("module", module_id, student_id))
            lessons = ()
        progress = module_progress_from(student_id, module_id, lessons, records)
        return progress, dedupe_warnings(warnings)

    async def compute_course_modules(
        self,
        student_id: str,
        course_id: str,
        records: list[CompletionRecord],
    ) -> tuple[list[ModuleProgress], tuple[AnalyticsWarning, ...]]:
        """Per-module breakdown of a course, ordered by module id.

        Modules are found by resolving each lesson the course lists, so a
        module only appears if it still has a lesson in the course.
        """
        lessons = await self._resolver.course_lessons(course_id)
        warnings: list[AnalyticsWarning] = []
        if lessons is None:
            warnings.append(_dangling("course", course_id, student_id))
            return [], dedupe_warnings(warnings)

        module_ids: set[str] = set()
        for lesson_id in lessons:
            location = await self._resolver.lesson_location(lesson_id)
            if location is None:
                warnings.append(_dangling("lesson", lesson_id, student_id))
                continue
            module_ids.add(location.module_id)

        modules: list[ModuleProgress] = []
        for module_id in sorted(module_ids):
            progress, module_warnings = await self.compute_module_progress(
                student_id, module_id, records
            )
            modules.append(progress)
            warnings.extend(module_warnings)
        return modules, dedupe_warnings(warnings)
