"""Student-facing analytics read models.

All endpoints are scoped to the token subject.  Only the category rollup
is cached: it walks every enrollment, while pacing, streaks and the
gamification profile depend on "now" and are cheap once the hierarchy
resolver is warm.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from learning_analytics.api.dependencies import require_user
from learning_analytics.api.schemas import (
    CategoriesResponse,
    CategoryOut,
    CourseProgressOut,
    CourseSummaryOut,
    DailyActivityOut,
    DashboardResponse,
    GamificationOut,
    GamificationResponse,
    PacingOut,
    PacingResponse,
    StreakHistoryResponse,
    StreakOut,
    StreakResponse,
    warnings_out,
)
from learning_analytics.core.config import SETTINGS
from learning_analytics.models.principal import Principal
from learning_analytics.services.analytics_facade import AnalyticsFacade
from learning_analytics.services.cache import CATEGORIES_NAME, lookup, store
from learning_analytics.services.engine import get_facade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])

MAX_HISTORY_DAYS = 365


async def cached_categories(facade: AnalyticsFacade, student_id: str) -> CategoriesResponse:
    slot = await lookup(student_id, CATEGORIES_NAME)
    if slot.value is not None:
        return CategoriesResponse.model_validate_json(slot.value)

    categories, warnings = await facade.get_category_performance(student_id)
    body = CategoriesResponse(
        student_id=student_id,
        categories=[CategoryOut.model_validate(c) for c in categories],
        warnings=warnings_out(warnings),
    )
    await store(
        student_id, slot, body.model_dump_json(), SETTINGS.analytics_cache_ttl_seconds
    )
    return body


async def pacing_view(facade: AnalyticsFacade, student_id: str, course_id: str) -> PacingResponse:
    pacing, warnings = await facade.get_pacing(student_id, course_id)
    return PacingResponse(
        course_id=course_id,
        pacing=PacingOut.model_validate(pacing),
        warnings=warnings_out(warnings),
    )


async def streak_view(facade: AnalyticsFacade, student_id: str) -> StreakResponse:
    streak, warnings = await facade.get_streak(student_id)
    return StreakResponse(
        streak=StreakOut.model_validate(streak), warnings=warnings_out(warnings)
    )


async def gamification_view(facade: AnalyticsFacade, student_id: str) -> GamificationResponse:
    profile, warnings = await facade.get_gamification(student_id)
    return GamificationResponse(
        gamification=GamificationOut.from_profile(profile),
        warnings=warnings_out(warnings),
    )


async def dashboard_view(facade: AnalyticsFacade, student_id: str) -> DashboardResponse:
    overview = await facade.get_dashboard(student_id)
    return DashboardResponse(
        student_id=overview.student_id,
        total_courses=overview.total_courses,
        completed_courses=overview.completed_courses,
        average_progress=overview.average_progress,
        total_time_spent_minutes=overview.total_time_spent_minutes,
        courses=[
            CourseSummaryOut(
                course_id=c.course_id,
                title=c.title,
                progress=CourseProgressOut.model_validate(c.progress),
                pacing=PacingOut.model_validate(c.pacing) if c.pacing else None,
            )
            for c in overview.courses
        ],
        streak=StreakOut.model_validate(overview.streak),
        gamification=GamificationOut.from_profile(overview.gamification),
        categories=[CategoryOut.model_validate(c) for c in overview.categories],
        warnings=warnings_out(overview.warnings),
    )


@router.get("/pacing/{course_id}", response_model=PacingResponse)
async def get_pacing(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> PacingResponse:
    return await pacing_view(facade, principal.user_id, course_id)


@router.get("/streak", response_model=StreakResponse)
async def get_streak(
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> StreakResponse:
    return await streak_view(facade, principal.user_id)


@router.get("/streak/history", response_model=StreakHistoryResponse)
async def get_streak_history(
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
    days: Annotated[int, Query(ge=1, le=MAX_HISTORY_DAYS)] = 30,
) -> StreakHistoryResponse:
    history, warnings = await facade.get_streak_history(principal.user_id, days)
    return StreakHistoryResponse(
        days=[DailyActivityOut.model_validate(d) for d in history],
        warnings=warnings_out(warnings),
    )


@router.get("/gamification", response_model=GamificationResponse)
async def get_gamification(
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> GamificationResponse:
    return await gamification_view(facade, principal.user_id)


@router.get("/categories", response_model=CategoriesResponse)
async def get_categories(
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> CategoriesResponse:
    return await cached_categories(facade, principal.user_id)


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> DashboardResponse:
    return await dashboard_view(facade, principal.user_id)
