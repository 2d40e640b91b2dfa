"""Read-only views of entities owned by the content catalog.

Nothing here is persisted by this service.  The catalog collaborator owns
courses, modules, lessons and enrollments; these dataclasses are what its
client hands back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class LessonLocation:
    """Answer to resolveLesson: where a lesson sits in the hierarchy."""

    lesson_id: str
    module_id: str
    course_id: str
    category: str


@dataclass(frozen=True, slots=True)
class HierarchyRef:
    lesson_id: str
    module_id: str
    course_id: str
    category: str
    course_total_lessons: int
    module_total_lessons: int


@dataclass(frozen=True, slots=True)
class CourseRef:
    course_id: str
    title: str
    category: str


@dataclass(frozen=True, slots=True)
class EnrollmentWindow:
    student_id: str
    course_id: str
    enrolled_at: datetime
    target_duration_days: int
