"""Analytics facade: the one entry point the HTTP layer talks to.

Write path:
  record_completion -> ledger merge -> badge re-evaluation

Read path:
  ledger records + catalog -> progress / pacing / streak / gamification /
  category rollups

Every read loads the student's ledger records once and hands the same
list to each calculator, so the numbers on one dashboard agree with each
other and with the single-purpose endpoints.  Cache invalidation happens
in the routes, next to the read-through cache it belongs to.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, tzinfo

from learning_analytics.core.config import EngineConfig
from learning_analytics.core.errors import CatalogUnavailable, EnrollmentNotFound
from learning_analytics.core.metrics import DANGLING_REFERENCES
from learning_analytics.models.analytics import (
    CategoryPerformance,
    CourseSummary,
    DailyActivity,
    DashboardOverview,
    DerivedCourseProgress,
    ModuleProgress,
    PacingResult,
    StreakState,
)
from learning_analytics.models.catalog import EnrollmentWindow
from learning_analytics.models.completion import CompletionRecord, RecordResult
from learning_analytics.models.gamification import GamificationProfile
from learning_analytics.models.warnings import (
    AnalyticsWarning,
    WarningCode,
    dedupe_warnings,
)
from learning_analytics.services.category_performance import CategoryAggregator
from learning_analytics.services.completion_ledger import CompletionLedger
from learning_analytics.services.gamification import BadgeContext, GamificationEngine
from learning_analytics.services.hierarchy import HierarchyResolver
from learning_analytics.services.pacing import compute_pacing
from learning_analytics.services.progress_aggregator import ProgressAggregator
from learning_analytics.services.streaks import (
    compute_streak,
    resolve_timezone,
    streak_history,
)

logger = logging.getLogger(__name__)

Warnings = tuple[AnalyticsWarning, ...]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnalyticsFacade:
    def __init__(
        self,
        *,
        ledger: CompletionLedger,
        resolver: HierarchyResolver,
        gamification: GamificationEngine,
        config: EngineConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.ledger = ledger
        self.resolver = resolver
        self.gamification = gamification
        self.config = config
        self.progress = ProgressAggregator(resolver)
        self.categories = CategoryAggregator(resolver)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # -- write path --------------------------------------------------------

    async def record_completion(
        self,
        student_id: str,
        lesson_id: str,
        progress_percentage: float,
        time_spent_delta_minutes: float,
        quiz_score: float | None = None,
        *,
        occurred_at: datetime | None = None,
    ) -> RecordResult:
        now = self.now()
        result = await self.ledger.record_completion(
            student_id,
            lesson_id,
            progress_percentage,
            time_spent_delta_minutes,
            quiz_score,
            occurred_at=occurred_at or now,
        )
        try:
            await self._refresh_badges(student_id, now=now)
        except CatalogUnavailable as e:
            # The completion is stored; badges catch up on the next read.
            logger.warning(
                "Badge evaluation deferred for student=%s: %s",
                student_id,
                e,
                extra={"student_id": student_id},
            )
        return result

    async def reset_completion(self, student_id: str, lesson_id: str) -> CompletionRecord:
        return await self.ledger.reset_completion(student_id, lesson_id)

    # -- single read models ------------------------------------------------

    async def get_course_progress(
        self, student_id: str, course_id: str
    ) -> tuple[DerivedCourseProgress, Warnings]:
        records = await self.ledger.list_records(student_id)
        return await self.progress.compute_course_progress(student_id, course_id, records)

    async def get_module_progress(
        self, student_id: str, module_id: str
    ) -> tuple[ModuleProgress, Warnings]:
        records = await self.ledger.list_records(student_id)
        return await self.progress.compute_module_progress(student_id, module_id, records)

    async def get_course_modules(
        self, student_id: str, course_id: str
    ) -> tuple[list[ModuleProgress], Warnings]:
        records = await self.ledger.list_records(student_id)
        return await self.progress.compute_course_modules(student_id, course_id, records)

    async def get_pacing(
        self, student_id: str, course_id: str, *, now: datetime | None = None
    ) -> tuple[PacingResult, Warnings]:
        enrollment = await self.resolver.enrollment(student_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFound(student_id, course_id)
        progress, warnings = await self.get_course_progress(student_id, course_id)
        return self._pacing(progress, enrollment, now or self.now()), warnings

    async def get_streak(
        self, student_id: str, *, now: datetime | None = None
    ) -> tuple[StreakState, Warnings]:
        tz, warnings = await self._timezone(student_id)
        records = await self.ledger.list_records(student_id)
        return compute_streak(student_id, records, now=now or self.now(), tz=tz), warnings

    async def get_streak_history(
        self, student_id: str, days: int = 30, *, now: datetime | None = None
    ) -> tuple[list[DailyActivity], Warnings]:
        tz, warnings = await self._timezone(student_id)
        records = await self.ledger.list_records(student_id)
        return streak_history(records, now=now or self.now(), tz=tz, days=days), warnings

    async def get_category_performance(
        self, student_id: str
    ) -> tuple[list[CategoryPerformance], Warnings]:
        records = await self.ledger.list_records(student_id)
        return await self.categories.compute_category_performance(student_id, records)

    async def get_gamification(
        self, student_id: str, *, now: datetime | None = None
    ) -> tuple[GamificationProfile, Warnings]:
        now = now or self.now()
        records = await self.ledger.list_records(student_id)
        categories, cat_warnings = await self.categories.compute_category_performance(
            student_id, records
        )
        tz, tz_warnings = await self._timezone(student_id)
        streak = compute_streak(student_id, records, now=now, tz=tz)
        profile = await self.gamification.build_profile(
            student_id,
            records,
            self._badge_context(records, categories, streak),
            now=now,
        )
        return profile, dedupe_warnings([*tz_warnings, *cat_warnings])

    # -- dashboard ---------------------------------------------------------

    async def get_dashboard(
        self, student_id: str, *, now: datetime | None = None
    ) -> DashboardOverview:
        """Everything the student dashboard shows, from one ledger read.

        A course the catalog no longer knows is left out and reported as a
        warning; it never fails the whole overview.  Courses with ledger
        activity but no enrollment are not summarised either; each one is
        reported as ENROLLMENT_NOT_FOUND.
        """
        now = now or self.now()
        records = await self.ledger.list_records(student_id)
        enrollments = await self.resolver.enrollments(student_id)
        tz, tz_warnings = await self._timezone(student_id)
        warnings: list[AnalyticsWarning] = list(tz_warnings)

        courses: list[CourseSummary] = []
        for enrollment in enrollments:
            course = await self.resolver.course(enrollment.course_id)
            if course is None:
                DANGLING_REFERENCES.labels(entity_type="course").inc()
                warnings.append(AnalyticsWarning.dangling("course", enrollment.course_id))
                continue
            progress, course_warnings = await self.progress.compute_course_progress(
                student_id, enrollment.course_id, records
            )
            if course_warnings:
                # Lesson listing unresolvable; skipped like the category rollup does.
                warnings.extend(course_warnings)
                continue
            courses.append(
                CourseSummary(
                    course_id=course.course_id,
                    title=course.title,
                    progress=progress,
                    pacing=self._pacing(progress, enrollment, now),
                )
            )

        enrolled = {e.course_id for e in enrollments}
        for course_id in sorted({r.course_id for r in records if r.course_id} - enrolled):
            warnings.append(AnalyticsWarning.missing_enrollment(course_id))

        categories, cat_warnings = await self.categories.compute_category_performance(
            student_id, records, enrollments
        )
        warnings.extend(cat_warnings)

        streak = compute_streak(student_id, records, now=now, tz=tz)
        profile = await self.gamification.build_profile(
            student_id,
            records,
            self._badge_context(records, categories, streak),
            now=now,
        )

        percentages = [c.progress.percentage for c in courses]
        return DashboardOverview(
            student_id=student_id,
            total_courses=len(courses),
            completed_courses=sum(1 for p in percentages if p >= 100),
            average_progress=round(sum(percentages) / len(percentages), 2)
            if percentages
            else 0.0,
            total_time_spent_minutes=round(
                sum(c.progress.total_time_spent_minutes for c in courses), 2
            ),
            courses=tuple(courses),
            streak=streak,
            gamification=profile,
            categories=tuple(categories),
            warnings=dedupe_warnings(warnings),
        )

    # -- internals ---------------------------------------------------------

    def _pacing(
        self,
        progress: DerivedCourseProgress,
        enrollment: EnrollmentWindow,
        now: datetime,
    ) -> PacingResult:
        return compute_pacing(
            progress.percentage,
            enrollment,
            now=now,
            ahead_threshold=self.config.pacing_ahead_threshold,
            behind_threshold=self.config.pacing_behind_threshold,
        )

    async def _timezone(self, student_id: str) -> tuple[tzinfo, Warnings]:
        try:
            tz_name = await self.resolver.student_timezone(student_id)
        except CatalogUnavailable as e:
            logger.warning(
                "Timezone lookup failed for student=%s, using UTC: %s",
                student_id,
                e,
                extra={"student_id": student_id},
            )
            return UTC, (
                AnalyticsWarning(
                    code=WarningCode.INVALID_TIMEZONE,
                    entity_type="student",
                    entity_id=student_id,
                    message="timezone unavailable, using UTC",
                ),
            )
        tz, warning = resolve_timezone(tz_name)
        return tz, () if warning is None else (warning,)

    def _badge_context(
        self,
        records: list[CompletionRecord],
        categories: list[CategoryPerformance],
        streak: StreakState,
    ) -> BadgeContext:
        return BadgeContext(
            lessons_completed=sum(1 for r in records if r.is_completed),
            courses_completed=sum(c.completed_courses for c in categories),
            current_streak_days=streak.current_streak_days,
            longest_streak_days=streak.longest_streak_days,
            categories=len(categories),
            activity_points=self.gamification.activity_points(records),
        )

    async def _refresh_badges(self, student_id: str, *, now: datetime) -> None:
        records = await self.ledger.list_records(student_id)
        categories, _ = await self.categories.compute_category_performance(
            student_id, records
        )
        tz, _ = await self._timezone(student_id)
        streak = compute_streak(student_id, records, now=now, tz=tz)
        await self.gamification.award_badges(
            student_id, self._badge_context(records, categories, streak), now=now
        )
