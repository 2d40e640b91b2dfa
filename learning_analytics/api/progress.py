"""Completion ingestion and progress read models.

Write:
  POST /v1/progress/completions
    -> ledger merge (idempotent on cumulative fields)
    -> retire cached analytics for the student
    -> 201 created / 200 merged

Read (student = token subject):
  GET /v1/progress/courses/{course_id}           read-through cached
  GET /v1/progress/courses/{course_id}/modules
  GET /v1/progress/modules/{module_id}
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from learning_analytics.api.dependencies import require_user
from learning_analytics.api.schemas import (
    CompletionIn,
    CompletionOut,
    CourseModulesResponse,
    CourseProgressOut,
    CourseProgressResponse,
    ModuleProgressOut,
    ModuleProgressResponse,
    warnings_out,
)
from learning_analytics.core.config import SETTINGS
from learning_analytics.models.principal import Principal
from learning_analytics.services.analytics_facade import AnalyticsFacade
from learning_analytics.services.cache import (
    course_progress_name,
    invalidate_student,
    lookup,
    store,
)
from learning_analytics.services.engine import get_facade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


async def cached_course_progress(
    facade: AnalyticsFacade, student_id: str, course_id: str
) -> CourseProgressResponse:
    """Read-through: cache hit returns the stored JSON, miss computes and stores it."""
    slot = await lookup(student_id, course_progress_name(course_id))
    if slot.value is not None:
        return CourseProgressResponse.model_validate_json(slot.value)

    progress, warnings = await facade.get_course_progress(student_id, course_id)
    body = CourseProgressResponse(
        progress=CourseProgressOut.model_validate(progress),
        warnings=warnings_out(warnings),
    )
    await store(
        student_id, slot, body.model_dump_json(), SETTINGS.analytics_cache_ttl_seconds
    )
    return body


async def module_breakdown(
    facade: AnalyticsFacade, student_id: str, course_id: str
) -> CourseModulesResponse:
    modules, warnings = await facade.get_course_modules(student_id, course_id)
    return CourseModulesResponse(
        course_id=course_id,
        modules=[ModuleProgressOut.model_validate(m) for m in modules],
        warnings=warnings_out(warnings),
    )


@router.post(
    "/completions",
    response_model=CompletionOut,
    responses={status.HTTP_201_CREATED: {"model": CompletionOut}},
)
async def record_completion(
    body: CompletionIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> CompletionOut:
    result = await facade.record_completion(
        principal.user_id,
        body.lesson_id,
        body.progress_percentage,
        body.time_spent_delta_minutes,
        body.quiz_score,
        occurred_at=body.occurred_at,
    )
    await invalidate_student(principal.user_id)

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return CompletionOut.from_result(result)


@router.get("/courses/{course_id}", response_model=CourseProgressResponse)
async def get_course_progress(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> CourseProgressResponse:
    return await cached_course_progress(facade, principal.user_id, course_id)


@router.get("/courses/{course_id}/modules", response_model=CourseModulesResponse)
async def get_course_modules(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> CourseModulesResponse:
    return await module_breakdown(facade, principal.user_id, course_id)


@router.get("/modules/{module_id}", response_model=ModuleProgressResponse)
async def get_module_progress(
    module_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    facade: Annotated[AnalyticsFacade, Depends(get_facade)],
) -> ModuleProgressResponse:
    progress, warnings = await facade.get_module_progress(principal.user_id, module_id)
    return ModuleProgressResponse(
        progress=ModuleProgressOut.model_validate(progress),
        warnings=warnings_out(warnings),
    )
