"""Pydantic request/response models shared by the /v1 routers.

Engine results are frozen dataclasses; the response models read them
with from_attributes.  Cached read models are stored as the JSON of
these models, so a cache hit and a fresh computation serialize the same.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from learning_analytics.models.analytics import PacingStatus
from learning_analytics.models.completion import CompletionStatus, RecordResult
from learning_analytics.models.gamification import GamificationProfile, PointSource
from learning_analytics.models.warnings import AnalyticsWarning, WarningCode
from learning_analytics.services.gamification import BADGE_RULES


class _FromEngine(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class WarningOut(_FromEngine):
    code: WarningCode
    entity_type: str
    entity_id: str
    message: str


def warnings_out(warnings: Iterable[AnalyticsWarning]) -> list[WarningOut]:
    return [WarningOut.model_validate(w) for w in warnings]


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------


class CompletionIn(BaseModel):
    lesson_id: str
    progress_percentage: float
    time_spent_delta_minutes: float = 0.0
    quiz_score: float | None = None
    # Client-side event time; defaults to the server clock.
    occurred_at: datetime.datetime | None = None


class CompletionRecordOut(_FromEngine):
    student_id: str
    lesson_id: str
    status: CompletionStatus
    progress_percentage: float
    time_spent_minutes: float
    best_quiz_score: float | None
    first_started_at: datetime.datetime
    last_updated_at: datetime.datetime
    completed_at: datetime.datetime | None
    course_id: str | None
    module_id: str | None
    version: int


class CompletionOut(BaseModel):
    record: CompletionRecordOut
    created: bool
    warnings: list[WarningOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RecordResult) -> CompletionOut:
        return cls(
            record=CompletionRecordOut.model_validate(result.record),
            created=result.created,
            warnings=warnings_out(result.warnings),
        )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class CourseProgressOut(_FromEngine):
    student_id: str
    course_id: str
    completed_lessons: int
    total_lessons: int
    percentage: float
    total_time_spent_minutes: float


class CourseProgressResponse(BaseModel):
    progress: CourseProgressOut
    warnings: list[WarningOut] = Field(default_factory=list)


class ModuleProgressOut(_FromEngine):
    student_id: str
    module_id: str
    completed_lessons: int
    total_lessons: int
    percentage: float
    total_time_spent_minutes: float


class ModuleProgressResponse(BaseModel):
    progress: ModuleProgressOut
    warnings: list[WarningOut] = Field(default_factory=list)


class CourseModulesResponse(BaseModel):
    course_id: str
    modules: list[ModuleProgressOut]
    warnings: list[WarningOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class PacingOut(_FromEngine):
    expected_percentage: float
    actual_percentage: float
    deviation: float
    status: PacingStatus
    days_elapsed: int
    days_remaining: int


class PacingResponse(BaseModel):
    course_id: str
    pacing: PacingOut
    warnings: list[WarningOut] = Field(default_factory=list)


class StreakOut(_FromEngine):
    student_id: str
    current_streak_days: int
    longest_streak_days: int
    last_active_day: datetime.date | None


class StreakResponse(BaseModel):
    streak: StreakOut
    warnings: list[WarningOut] = Field(default_factory=list)


class DailyActivityOut(_FromEngine):
    day: datetime.date
    lessons_completed: int
    active: bool
    streak_days: int


class StreakHistoryResponse(BaseModel):
    days: list[DailyActivityOut]
    warnings: list[WarningOut] = Field(default_factory=list)


class BadgeOut(BaseModel):
    badge_id: str
    name: str
    description: str
    bonus_points: int
    earned_at: datetime.datetime


class PointEventOut(_FromEngine):
    source: PointSource
    source_id: str
    points: int
    occurred_at: datetime.datetime | None


class GamificationOut(BaseModel):
    student_id: str
    total_points: int
    level: int
    points_into_level: int
    points_for_next_level: int
    level_progress: float
    badges: list[BadgeOut]
    point_events: list[PointEventOut]

    @classmethod
    def from_profile(cls, profile: GamificationProfile) -> GamificationOut:
        rules = {r.badge_id: r for r in BADGE_RULES}
        badges = []
        for award in profile.badges:
            rule = rules.get(award.badge_id)
            badges.append(
                BadgeOut(
                    badge_id=award.badge_id,
                    name=rule.name if rule else award.badge_id,
                    description=rule.description if rule else "",
                    bonus_points=rule.bonus_points if rule else 0,
                    earned_at=award.earned_at,
                )
            )
        return cls(
            student_id=profile.student_id,
            total_points=profile.total_points,
            level=profile.level,
            points_into_level=profile.points_into_level,
            points_for_next_level=profile.points_for_next_level,
            level_progress=profile.level_progress,
            badges=badges,
            point_events=[PointEventOut.model_validate(e) for e in profile.point_events],
        )


class GamificationResponse(BaseModel):
    gamification: GamificationOut
    warnings: list[WarningOut] = Field(default_factory=list)


class CategoryOut(_FromEngine):
    category: str
    average_progress: float
    completed_courses: int
    total_courses: int
    total_study_time_minutes: float
    average_score: float | None


class CategoriesResponse(BaseModel):
    student_id: str
    categories: list[CategoryOut]
    warnings: list[WarningOut] = Field(default_factory=list)


class CourseSummaryOut(_FromEngine):
    course_id: str
    title: str
    progress: CourseProgressOut
    pacing: PacingOut | None


class DashboardResponse(BaseModel):
    student_id: str
    total_courses: int
    completed_courses: int
    average_progress: float
    total_time_spent_minutes: float
    courses: list[CourseSummaryOut]
    streak: StreakOut
    gamification: GamificationOut
    categories: list[CategoryOut]
    warnings: list[WarningOut] = Field(default_factory=list)
