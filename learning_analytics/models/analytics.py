"""Derived read models.

All of these are recomputed from the completion ledger plus the catalog;
none is a source of truth.  Caches may hold serialized copies for a short
TTL, nothing more.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from learning_analytics.models.gamification import GamificationProfile
from learning_analytics.models.warnings import AnalyticsWarning


@dataclass(frozen=True, slots=True)
class DerivedCourseProgress:
    student_id: str
    course_id: str
    completed_lessons: int
    total_lessons: int
    percentage: float
    total_time_spent_minutes: float


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    student_id: str
    module_id: str
    completed_lessons: int
    total_lessons: int
    percentage: float
    total_time_spent_minutes: float


class PacingStatus(StrEnum):
    AHEAD = "AHEAD"
    ON_TRACK = "ON_TRACK"
    BEHIND = "BEHIND"


@dataclass(frozen=True, slots=True)
class PacingResult:
    expected_percentage: float
    actual_percentage: float
    deviation: float
    status: PacingStatus
    days_elapsed: int
    days_remaining: int


@dataclass(frozen=True, slots=True)
class StreakState:
    student_id: str
    current_streak_days: int
    longest_streak_days: int
    last_active_day: date | None


@dataclass(frozen=True, slots=True)
class DailyActivity:
    """One point of the streak trend chart."""

    day: date
    lessons_completed: int
    active: bool
    streak_days: int


@dataclass(frozen=True, slots=True)
class CategoryPerformance:
    student_id: str
    category: str
    average_progress: float
    completed_courses: int
    total_courses: int
    total_study_time_minutes: float
    average_score: float | None


@dataclass(frozen=True, slots=True)
class CourseSummary:
    """Per-course card on the dashboard."""

    course_id: str
    title: str
    progress: DerivedCourseProgress
    pacing: PacingResult | None


@dataclass(frozen=True, slots=True)
class DashboardOverview:
    student_id: str
    total_courses: int
    completed_courses: int
    average_progress: float
    total_time_spent_minutes: float
    courses: tuple[CourseSummary, ...]
    streak: StreakState
    gamification: GamificationProfile
    categories: tuple[CategoryPerformance, ...]
    warnings: tuple[AnalyticsWarning, ...] = field(default_factory=tuple)
