from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class WarningCode(StrEnum):
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    ENROLLMENT_NOT_FOUND = "ENROLLMENT_NOT_FOUND"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"


@dataclass(frozen=True, slots=True)
class AnalyticsWarning:
    """A non-fatal problem found while computing a read model.

    Returned next to the (partial) result instead of being raised, so one
    broken course never takes a whole dashboard down.
    """

    code: WarningCode
    entity_type: str  # lesson|module|course|enrollment|student
    entity_id: str
    message: str

    @staticmethod
    def dangling(entity_type: str, entity_id: str) -> AnalyticsWarning:
        return AnalyticsWarning(
            code=WarningCode.DANGLING_REFERENCE,
            entity_type=entity_type,
            entity_id=entity_id,
            message=f"{entity_type} {entity_id} is not in the catalog",
        )

    @staticmethod
    def missing_enrollment(course_id: str) -> AnalyticsWarning:
        return AnalyticsWarning(
            code=WarningCode.ENROLLMENT_NOT_FOUND,
            entity_type="enrollment",
            entity_id=course_id,
            message=f"progress recorded in course {course_id} without an enrollment",
        )


def dedupe_warnings(warnings: list[AnalyticsWarning]) -> tuple[AnalyticsWarning, ...]:
    """Drop repeats while keeping first-seen order."""
    return tuple(dict.fromkeys(warnings))
