"""Staff views of any student's analytics, plus the administrative reset.

Guarded by require_staff (admin or instructor role).  The read endpoints
return exactly what the student sees on the matching /v1 endpoint.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from learning_analytics.api.analytics import (
    cached_categories,
    dashboard_view,
    gamification_view,
    pacing_view,
    streak_view,
)
from learning_analytics.api.dependencies import require_staff
from learning_analytics.api.progress import cached_course_progress, module_breakdown
from learning_analytics.api.schemas import (
    CategoriesResponse,
    CompletionRecordOut,
    CourseModulesResponse,
    CourseProgressResponse,
    DashboardResponse,
    GamificationResponse,
    PacingResponse,
    StreakResponse,
)
from learning_analytics.models.principal import Principal
from learning_analytics.services.analytics_facade import AnalyticsFacade
from learning_analytics.services.cache import invalidate_student
from learning_analytics.services.completion_ledger import validate_id
from learning_analytics.services.engine import get_facade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])

Staff = Annotated[Principal, Depends(require_staff)]
Facade = Annotated[AnalyticsFacade, Depends(get_facade)]


@router.get(
    "/students/{student_id}/courses/{course_id}",
    response_model=CourseProgressResponse,
)
async def admin_course_progress(
    student_id: str, course_id: str, principal: Staff, facade: Facade
) -> CourseProgressResponse:
    validate_id("student_id", student_id)
    return await cached_course_progress(facade, student_id, course_id)


@router.get(
    "/students/{student_id}/courses/{course_id}/modules",
    response_model=CourseModulesResponse,
)
async def admin_course_modules(
    student_id: str, course_id: str, principal: Staff, facade: Facade
) -> CourseModulesResponse:
    validate_id("student_id", student_id)
    return await module_breakdown(facade, student_id, course_id)


@router.get(
    "/students/{student_id}/pacing/{course_id}",
    response_model=PacingResponse,
)
async def admin_pacing(
    student_id: str, course_id: str, principal: Staff, facade: Facade
) -> PacingResponse:
    validate_id("student_id", student_id)
    return await pacing_view(facade, student_id, course_id)


@router.get("/students/{student_id}/streak", response_model=StreakResponse)
async def admin_streak(student_id: str, principal: Staff, facade: Facade) -> StreakResponse:
    validate_id("student_id", student_id)
    return await streak_view(facade, student_id)


@router.get("/students/{student_id}/gamification", response_model=GamificationResponse)
async def admin_gamification(
    student_id: str, principal: Staff, facade: Facade
) -> GamificationResponse:
    validate_id("student_id", student_id)
    return await gamification_view(facade, student_id)


@router.get("/students/{student_id}/categories", response_model=CategoriesResponse)
async def admin_categories(
    student_id: str, principal: Staff, facade: Facade
) -> CategoriesResponse:
    validate_id("student_id", student_id)
    return await cached_categories(facade, student_id)


@router.get("/students/{student_id}/dashboard", response_model=DashboardResponse)
async def admin_dashboard(
    student_id: str, principal: Staff, facade: Facade
) -> DashboardResponse:
    validate_id("student_id", student_id)
    logger.info(
        "Dashboard of student=%s viewed by user=%s", student_id, principal.user_id
    )
    return await dashboard_view(facade, student_id)


@router.post(
    "/completions/{student_id}/{lesson_id}/reset",
    response_model=CompletionRecordOut,
)
async def admin_reset_completion(
    student_id: str, lesson_id: str, principal: Staff, facade: Facade
) -> CompletionRecordOut:
    record = await facade.reset_completion(student_id, lesson_id)
    await invalidate_student(student_id)
    logger.info(
        "Completion reset by user=%s: student=%s lesson=%s",
        principal.user_id,
        student_id,
        lesson_id,
        extra={"student_id": student_id, "lesson_id": lesson_id},
    )
    return CompletionRecordOut.model_validate(record)
