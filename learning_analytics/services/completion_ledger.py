"""Completion ledger: the write path.

One CompletionRecord per (student, lesson).  A progress report is merged
into the stored record with merge_report(), a pure function:

  progress_percentage  max(existing, incoming)
  time_spent_minutes   existing + delta        (negative delta is rejected)
  best_quiz_score      max of the two, None if neither has one
  first_started_at     min
  last_updated_at      max
  completed_at         set the first time progress reaches 100, then frozen

max/sum/min are commutative and associative, so replayed or reordered
reports converge on the same cumulative values.  (Duplicate reports with
a positive delta do add time twice: the lesson player sends deltas, and
the ledger cannot tell a retry from a second session.)

Writers race through compare-and-set on ``version``: read, merge, write
back only if nobody else wrote in between, otherwise read again.  The
loop is bounded by LEDGER_MAX_RETRIES.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from datetime import datetime

from learning_analytics.core.errors import (
    CompletionNotFound,
    ConcurrencyConflict,
    LedgerBusyError,
    ValidationError,
)
from learning_analytics.core.metrics import (
    COMPLETIONS_RECORDED,
    DANGLING_REFERENCES,
    LEDGER_CAS_RETRIES,
)
from learning_analytics.models.catalog import HierarchyRef
from learning_analytics.models.completion import (
    CompletionRecord,
    CompletionStatus,
    ProgressReport,
    RecordResult,
)
from learning_analytics.models.warnings import AnalyticsWarning
from learning_analytics.repos.completion_repo import CompletionRepo
from learning_analytics.services.hierarchy import HierarchyResolver

logger = logging.getLogger(__name__)

ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,127}$")


def validate_id(field: str, value: str) -> str:
    if not isinstance(value, str) or not ID_PATTERN.match(value):
        raise ValidationError(field, f"malformed id {value!r}")
    return value


def _validate_percentage(field: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError(field, "must be a number")
    if not math.isfinite(value) or not 0 <= value <= 100:
        raise ValidationError(field, f"must be between 0 and 100 (got {value})")
    return float(value)


def build_report(
    student_id: str,
    lesson_id: str,
    progress_percentage: float,
    time_spent_delta_minutes: float,
    quiz_score: float | None,
    occurred_at: datetime,
) -> ProgressReport:
    """Validate raw input and return a ProgressReport.

    Raises ValidationError on the first bad field; nothing has been
    written at that point.
    """
    validate_id("student_id", student_id)
    validate_id("lesson_id", lesson_id)
    progress = _validate_percentage("progress_percentage", progress_percentage)

    if isinstance(time_spent_delta_minutes, bool) or not isinstance(
        time_spent_delta_minutes, int | float
    ):
        raise ValidationError("time_spent_delta_minutes", "must be a number")
    if not math.isfinite(time_spent_delta_minutes):
        raise ValidationError("time_spent_delta_minutes", "must be finite")
    if time_spent_delta_minutes < 0:
        raise ValidationError(
            "time_spent_delta_minutes",
            f"must be >= 0 (got {time_spent_delta_minutes})",
        )

    score = None if quiz_score is None else _validate_percentage("quiz_score", quiz_score)

    if occurred_at.tzinfo is None or occurred_at.utcoffset() is None:
        raise ValidationError("occurred_at", "must be timezone-aware")

    return ProgressReport(
        student_id=student_id,
        lesson_id=lesson_id,
        progress_percentage=progress,
        time_spent_delta_minutes=float(time_spent_delta_minutes),
        occurred_at=occurred_at,
        quiz_score=score,
    )


def derive_status(progress_percentage: float, time_spent_minutes: float) -> CompletionStatus:
    if progress_percentage >= 100:
        return CompletionStatus.COMPLETED
    if progress_percentage > 0 or time_spent_minutes > 0:
        return CompletionStatus.IN_PROGRESS
    return CompletionStatus.NOT_STARTED


def _max_optional(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def new_record(report: ProgressReport, hierarchy: HierarchyRef | None) -> CompletionRecord:
    progress = report.progress_percentage
    time_spent = report.time_spent_delta_minutes
    return CompletionRecord(
        student_id=report.student_id,
        lesson_id=report.lesson_id,
        status=derive_status(progress, time_spent),
        progress_percentage=progress,
        time_spent_minutes=time_spent,
        first_started_at=report.occurred_at,
        last_updated_at=report.occurred_at,
        best_quiz_score=report.quiz_score,
        completed_at=report.occurred_at if progress >= 100 else None,
        course_id=hierarchy.course_id if hierarchy else None,
        module_id=hierarchy.module_id if hierarchy else None,
        version=1,
    )


def merge_report(
    existing: CompletionRecord,
    report: ProgressReport,
    hierarchy: HierarchyRef | None = None,
) -> CompletionRecord:
    """Fold one report into a stored record.  Returns a new record, version + 1."""
    progress = max(existing.progress_percentage, report.progress_percentage)
    time_spent = existing.time_spent_minutes + report.time_spent_delta_minutes

    completed_at = existing.completed_at
    if completed_at is None and progress >= 100:
        completed_at = report.occurred_at

    course_id, module_id = existing.course_id, existing.module_id
    if course_id is None and hierarchy is not None:
        course_id, module_id = hierarchy.course_id, hierarchy.module_id

    return replace(
        existing,
        status=derive_status(progress, time_spent),
        progress_percentage=progress,
        time_spent_minutes=time_spent,
        best_quiz_score=_max_optional(existing.best_quiz_score, report.quiz_score),
        first_started_at=min(existing.first_started_at, report.occurred_at),
        last_updated_at=max(existing.last_updated_at, report.occurred_at),
        completed_at=completed_at,
        course_id=course_id,
        module_id=module_id,
        version=existing.version + 1,
    )


def reset_record(existing: CompletionRecord) -> CompletionRecord:
    """Administrative reset: back to NOT_STARTED, row and timestamps kept.

    last_updated_at is left alone so an admin action never counts as
    student activity for streaks.
    """
    return replace(
        existing,
        status=CompletionStatus.NOT_STARTED,
        progress_percentage=0.0,
        time_spent_minutes=0.0,
        best_quiz_score=None,
        completed_at=None,
        version=existing.version + 1,
    )


class CompletionLedger:
    def __init__(
        self,
        repo: CompletionRepo,
        resolver: HierarchyResolver,
        *,
        max_retries: int = 8,
    ) -> None:
        self.repo = repo
        self._resolver = resolver
        self._max_retries = max_retries

    async def record_completion(
        self,
        student_id: str,
        lesson_id: str,
        progress_percentage: float,
        time_spent_delta_minutes: float,
        quiz_score: float | None = None,
        *,
        occurred_at: datetime,
    ) -> RecordResult:
        try:
            report = build_report(
                student_id,
                lesson_id,
                progress_percentage,
                time_spent_delta_minutes,
                quiz_score,
                occurred_at,
            )
        except ValidationError as e:
            COMPLETIONS_RECORDED.labels(outcome="rejected").inc()
            logger.info("Completion rejected: %s", e)
            raise

        hierarchy = await self._resolver.resolve_lesson(lesson_id)
        warnings: tuple[AnalyticsWarning, ...] = ()
        if hierarchy is None:
            DANGLING_REFERENCES.labels(entity_type="lesson").inc()
            warnings = (AnalyticsWarning.dangling("lesson", lesson_id),)
            logger.warning(
                "Completion for lesson not in catalog, stored anyway: student=%s lesson=%s",
                student_id,
                lesson_id,
                extra={
                    "student_id": student_id,
                    "lesson_id": lesson_id,
                    "warning_code": "DANGLING_REFERENCE",
                },
            )

        for attempt in range(1, self._max_retries + 1):
            existing = await self.repo.get(student_id, lesson_id)
            try:
                if existing is None:
                    record = new_record(report, hierarchy)
                    await self.repo.insert(record)
                else:
                    record = merge_report(existing, report, hierarchy)
                    await self.repo.replace(record, existing.version)
            except ConcurrencyConflict:
                LEDGER_CAS_RETRIES.inc()
                logger.debug(
                    "CAS conflict on (%s, %s), attempt %d",
                    student_id,
                    lesson_id,
                    attempt,
                )
                continue

            created = existing is None
            COMPLETIONS_RECORDED.labels(outcome="created" if created else "merged").inc()
            logger.debug(
                "Completion %s: student=%s lesson=%s progress=%.2f v%d",
                "created" if created else "merged",
                student_id,
                lesson_id,
                record.progress_percentage,
                record.version,
            )
            return RecordResult(record=record, created=created, warnings=warnings)

        COMPLETIONS_RECORDED.labels(outcome="busy").inc()
        logger.error(
            "Ledger key still contended after %d attempts: student=%s lesson=%s",
            self._max_retries,
            student_id,
            lesson_id,
            extra={"student_id": student_id, "lesson_id": lesson_id},
        )
        raise LedgerBusyError(student_id, lesson_id, self._max_retries)

    async def reset_completion(self, student_id: str, lesson_id: str) -> CompletionRecord:
        validate_id("student_id", student_id)
        validate_id("lesson_id", lesson_id)

        for _ in range(self._max_retries):
            existing = await self.repo.get(student_id, lesson_id)
            if existing is None:
                raise CompletionNotFound(student_id, lesson_id)
            record = reset_record(existing)
            try:
                await self.repo.replace(record, existing.version)
            except ConcurrencyConflict:
                LEDGER_CAS_RETRIES.inc()
                continue
            logger.info(
                "Completion reset: student=%s lesson=%s",
                student_id,
                lesson_id,
                extra={"student_id": student_id, "lesson_id": lesson_id},
            )
            return record

        raise LedgerBusyError(student_id, lesson_id, self._max_retries)

    async def get_record(self, student_id: str, lesson_id: str) -> CompletionRecord | None:
        return await self.repo.get(student_id, lesson_id)

    async def list_records(self, student_id: str) -> list[CompletionRecord]:
        return await self.repo.list_for_student(student_id)
