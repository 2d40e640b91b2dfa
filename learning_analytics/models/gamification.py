from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class PointSource(StrEnum):
    LESSON_COMPLETED = "LESSON_COMPLETED"
    QUIZ_PASSED = "QUIZ_PASSED"
    BADGE_UNLOCKED = "BADGE_UNLOCKED"


@dataclass(frozen=True, slots=True)
class PointEvent:
    """One point-earning fact.

    (source, source_id) identifies the fact, so replaying the same ledger
    yields the same set of events and the same total.
    """

    source: PointSource
    source_id: str
    points: int
    occurred_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class BadgeAward:
    student_id: str
    badge_id: str
    earned_at: datetime


@dataclass(frozen=True, slots=True)
class LevelInfo:
    level: int
    points_into_level: int
    points_for_next_level: int
    level_progress: float  # 0..1 toward the next level


@dataclass(frozen=True, slots=True)
class GamificationProfile:
    student_id: str
    total_points: int
    level: int
    badges: tuple[BadgeAward, ...]
    points_into_level: int
    points_for_next_level: int
    level_progress: float
    point_events: tuple[PointEvent, ...] = ()
