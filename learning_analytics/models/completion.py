from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from learning_analytics.models.warnings import AnalyticsWarning


class CompletionStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True, slots=True)
class CompletionRecord:
    """One fact per (student, lesson): the ledger's unit of truth.

    Values are replaced, never mutated: a reader holding a record sees a
    fully merged state or the previous one, nothing in between.

    course_id/module_id are the hierarchy as it was at the first write
    that could resolve the lesson.  Aggregation reads the *current*
    hierarchy; the snapshot only keeps time-spent history for lessons
    that later disappear from a course.
    """

    student_id: str
    lesson_id: str
    status: CompletionStatus
    progress_percentage: float
    time_spent_minutes: float
    first_started_at: datetime
    last_updated_at: datetime
    best_quiz_score: float | None = None
    completed_at: datetime | None = None
    course_id: str | None = None
    module_id: str | None = None
    version: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.student_id, self.lesson_id)

    @property
    def is_completed(self) -> bool:
        return self.status == CompletionStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class ProgressReport:
    """An incoming progress report from the lesson player, already validated."""

    student_id: str
    lesson_id: str
    progress_percentage: float
    time_spent_delta_minutes: float
    occurred_at: datetime
    quiz_score: float | None = None


@dataclass(frozen=True, slots=True)
class RecordResult:
    record: CompletionRecord
    created: bool
    warnings: tuple[AnalyticsWarning, ...] = field(default_factory=tuple)
