"""PostgreSQL implementation of CompletionRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learning_analytics.core.errors import ConcurrencyConflict
from learning_analytics.db.tables import CompletionRecordRow
from learning_analytics.models.completion import CompletionRecord, CompletionStatus


class PgCompletionRepo:
    """Satisfies the CompletionRepo Protocol using PostgreSQL.

    Each call runs in its own short transaction.  The version check and
    the write are one statement, so two API instances racing on the same
    key cannot both win.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, student_id: str, lesson_id: str) -> CompletionRecord | None:
        stmt = select(CompletionRecordRow).where(
            CompletionRecordRow.student_id == student_id,
            CompletionRecordRow.lesson_id == lesson_id,
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def insert(self, record: CompletionRecord) -> None:
        stmt = (
            pg_insert(CompletionRecordRow)
            .values(**_record_values(record))
            .on_conflict_do_nothing(index_elements=["student_id", "lesson_id"])
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        if result.rowcount == 0:
            raise ConcurrencyConflict(f"record {record.key} already exists")

    async def replace(self, record: CompletionRecord, expected_version: int) -> None:
        stmt = (
            update(CompletionRecordRow)
            .where(
                CompletionRecordRow.student_id == record.student_id,
                CompletionRecordRow.lesson_id == record.lesson_id,
                CompletionRecordRow.version == expected_version,
            )
            .values(**_record_values(record))
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        if result.rowcount == 0:
            raise ConcurrencyConflict(
                f"record {record.key} changed (expected v{expected_version})"
            )

    async def list_for_student(self, student_id: str) -> list[CompletionRecord]:
        stmt = (
            select(CompletionRecordRow)
            .where(CompletionRecordRow.student_id == student_id)
            .order_by(CompletionRecordRow.lesson_id)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_record(row) for row in rows]


def _record_values(record: CompletionRecord) -> dict:
    return {
        "student_id": record.student_id,
        "lesson_id": record.lesson_id,
        "status": record.status.value,
        "progress_percentage": record.progress_percentage,
        "time_spent_minutes": record.time_spent_minutes,
        "best_quiz_score": record.best_quiz_score,
        "first_started_at": record.first_started_at,
        "last_updated_at": record.last_updated_at,
        "completed_at": record.completed_at,
        "course_id": record.course_id,
        "module_id": record.module_id,
        "version": record.version,
    }


def _row_to_record(row: CompletionRecordRow) -> CompletionRecord:
    return CompletionRecord(
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        status=CompletionStatus(row.status),
        progress_percentage=row.progress_percentage,
        time_spent_minutes=row.time_spent_minutes,
        best_quiz_score=row.best_quiz_score,
        first_started_at=row.first_started_at,
        last_updated_at=row.last_updated_at,
        completed_at=row.completed_at,
        course_id=row.course_id,
        module_id=row.module_id,
        version=row.version,
    )
