from __future__ import annotations

from typing import Protocol

from learning_analytics.models.gamification import BadgeAward


class BadgeRepo(Protocol):
    async def list_for_student(self, student_id: str) -> list[BadgeAward]: ...

    async def award(self, award: BadgeAward) -> bool:
        """Store the award unless the student already holds the badge.

        Returns True when stored.  An existing award is left untouched, which
        is what keeps earned_at immutable.
        """
        ...


class InMemoryBadgeRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], BadgeAward] = {}

    async def list_for_student(self, student_id: str) -> list[BadgeAward]:
        return sorted(
            (a for a in self._store.values() if a.student_id == student_id),
            key=lambda a: (a.earned_at, a.badge_id),
        )

    async def award(self, award: BadgeAward) -> bool:
        key = (award.student_id, award.badge_id)
        if key in self._store:
            return False
        self._store[key] = award
        return True
