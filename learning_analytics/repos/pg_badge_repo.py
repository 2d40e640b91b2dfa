"""PostgreSQL implementation of BadgeRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learning_analytics.db.tables import BadgeAwardRow
from learning_analytics.models.gamification import BadgeAward


class PgBadgeRepo:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_for_student(self, student_id: str) -> list[BadgeAward]:
        stmt = (
            select(BadgeAwardRow)
            .where(BadgeAwardRow.student_id == student_id)
            .order_by(BadgeAwardRow.earned_at, BadgeAwardRow.badge_id)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            BadgeAward(
                student_id=row.student_id,
                badge_id=row.badge_id,
                earned_at=row.earned_at,
            )
            for row in rows
        ]

    async def award(self, award: BadgeAward) -> bool:
        stmt = (
            pg_insert(BadgeAwardRow)
            .values(
                student_id=award.student_id,
                badge_id=award.badge_id,
                earned_at=award.earned_at,
            )
            .on_conflict_do_nothing(index_elements=["student_id", "badge_id"])
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return result.rowcount == 1
