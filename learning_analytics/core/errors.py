"""Exception taxonomy of the analytics engine.

The HTTP layer maps these to status codes in learning_analytics.main.
Dangling catalog references are not exceptions: they travel
as AnalyticsWarning values next to the results (see models.warnings).
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for engine errors."""


class ValidationError(AnalyticsError):
    """Rejected input (negative delta, out-of-range value, malformed id).

    Raised before anything is written; a rejected call has no effect.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ConcurrencyConflict(AnalyticsError):
    """A compare-and-set lost the race for a ledger key.

    Internal: the ledger re-reads and re-merges.  Callers never see it.
    """


class LedgerBusyError(AnalyticsError):
    """Compare-and-set retries for one key were exhausted."""

    def __init__(self, student_id: str, lesson_id: str, attempts: int) -> None:
        super().__init__(
            f"ledger key ({student_id}, {lesson_id}) still contended "
            f"after {attempts} attempts"
        )
        self.student_id = student_id
        self.lesson_id = lesson_id
        self.attempts = attempts


class EnrollmentNotFound(AnalyticsError):
    def __init__(self, student_id: str, course_id: str) -> None:
        super().__init__(f"no enrollment for student={student_id} course={course_id}")
        self.student_id = student_id
        self.course_id = course_id


class CompletionNotFound(AnalyticsError):
    def __init__(self, student_id: str, lesson_id: str) -> None:
        super().__init__(
            f"no completion record for student={student_id} lesson={lesson_id}"
        )
        self.student_id = student_id
        self.lesson_id = lesson_id


class CatalogUnavailable(AnalyticsError):
    """The catalog collaborator failed or answered with garbage.

    Raised by catalog clients; the hierarchy resolver turns it into an
    unresolvable lookup.
    """
