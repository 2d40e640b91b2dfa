"""Points, levels and badges.

Points are never stored.  They are a fold over point events that are
each traceable to one fact:

  LESSON_COMPLETED  one per COMPLETED ledger record
  QUIZ_PASSED       one per record whose best quiz score passes
  BADGE_UNLOCKED    one per awarded badge, worth that badge's bonus

Levels follow a geometric curve: reaching level n+1 takes
floor(base * multiplier**(n-1)) points on top of what level n took.
With the defaults (100, 1.5): level 2 at 100, level 3 at 250, level 4
at 475.

Badges are the only gamification state that is persisted, because
earned_at must not move once set.  Rules are checked against current
derived numbers; a badge is inserted if absent and never revoked.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from learning_analytics.core.config import EngineConfig
from learning_analytics.models.completion import CompletionRecord
from learning_analytics.models.gamification import (
    BadgeAward,
    GamificationProfile,
    LevelInfo,
    PointEvent,
    PointSource,
)
from learning_analytics.repos.badge_repo import BadgeRepo

logger = logging.getLogger(__name__)

# Upper bound for level_for_points with multiplier=1 and huge totals.
_MAX_LEVEL = 10_000


# ---------------------------------------------------------------------------
# Level curve
# ---------------------------------------------------------------------------


def level_threshold(level: int, base: int = 100, multiplier: float = 1.5) -> int:
    """Points needed to go from ``level`` to ``level + 1``."""
    return math.floor(base * multiplier ** (level - 1))


def cumulative_points(level: int, base: int = 100, multiplier: float = 1.5) -> int:
    """Total points at which ``level`` is reached."""
    return sum(level_threshold(n, base, multiplier) for n in range(1, level))


def level_for_points(total: int, base: int = 100, multiplier: float = 1.5) -> LevelInfo:
    level = 1
    floor_points = 0
    step = level_threshold(1, base, multiplier)
    while total >= floor_points + step and level < _MAX_LEVEL:
        floor_points += step
        level += 1
        step = level_threshold(level, base, multiplier)
    into_level = max(0, total - floor_points)
    return LevelInfo(
        level=level,
        points_into_level=into_level,
        points_for_next_level=step,
        level_progress=round(into_level / step, 4) if step > 0 else 0.0,
    )


# ---------------------------------------------------------------------------
# Badge rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BadgeContext:
    """The derived numbers badge rules look at."""

    lessons_completed: int
    courses_completed: int
    current_streak_days: int
    longest_streak_days: int
    categories: int
    activity_points: int


@dataclass(frozen=True, slots=True)
class BadgeRule:
    badge_id: str
    name: str
    description: str
    bonus_points: int
    earned: Callable[[BadgeContext], bool]


BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        "first_lesson", "First Steps", "Complete your first lesson", 25,
        lambda c: c.lessons_completed >= 1,
    ),
    BadgeRule(
        "first_course", "Finisher", "Complete your first course", 100,
        lambda c: c.courses_completed >= 1,
    ),
    BadgeRule(
        "five_courses", "Scholar", "Complete five courses", 250,
        lambda c: c.courses_completed >= 5,
    ),
    BadgeRule(
        "week_streak", "Week Warrior", "Maintain a 7-day learning streak", 50,
        lambda c: c.longest_streak_days >= 7,
    ),
    BadgeRule(
        "month_streak", "Dedicated Learner", "Maintain a 30-day learning streak", 200,
        lambda c: c.longest_streak_days >= 30,
    ),
    BadgeRule(
        "explorer", "Explorer", "Take courses in 3 different categories", 75,
        lambda c: c.categories >= 3,
    ),
    # Activity points only: badge bonuses do not count toward this one.
    BadgeRule(
        "point_master", "Point Master", "Earn 1000 points", 100,
        lambda c: c.activity_points >= 1000,
    ),
)

_RULES_BY_ID = {rule.badge_id: rule for rule in BADGE_RULES}


def evaluate_badges(context: BadgeContext) -> list[str]:
    return [rule.badge_id for rule in BADGE_RULES if rule.earned(context)]


# ---------------------------------------------------------------------------
# Point events
# ---------------------------------------------------------------------------


def activity_point_events(
    records: Iterable[CompletionRecord], config: EngineConfig
) -> list[PointEvent]:
    events: list[PointEvent] = []
    for record in sorted(records, key=lambda r: r.lesson_id):
        if record.is_completed:
            events.append(
                PointEvent(
                    source=PointSource.LESSON_COMPLETED,
                    source_id=record.lesson_id,
                    points=config.lesson_points,
                    occurred_at=record.completed_at,
                )
            )
        if (
            record.best_quiz_score is not None
            and record.best_quiz_score >= config.quiz_pass_score
        ):
            events.append(
                PointEvent(
                    source=PointSource.QUIZ_PASSED,
                    source_id=record.lesson_id,
                    points=config.quiz_pass_points,
                    occurred_at=record.last_updated_at,
                )
            )
    return events


def badge_point_events(badges: Iterable[BadgeAward]) -> list[PointEvent]:
    events = []
    for award in badges:
        rule = _RULES_BY_ID.get(award.badge_id)
        if rule is None:
            # Retired rule: the award stays visible but is worth nothing.
            continue
        events.append(
            PointEvent(
                source=PointSource.BADGE_UNLOCKED,
                source_id=award.badge_id,
                points=rule.bonus_points,
                occurred_at=award.earned_at,
            )
        )
    return events


def total_points(events: Iterable[PointEvent]) -> int:
    return sum(e.points for e in events)


class GamificationEngine:
    def __init__(self, badge_repo: BadgeRepo, config: EngineConfig) -> None:
        self.badge_repo = badge_repo
        self._config = config

    def activity_points(self, records: Iterable[CompletionRecord]) -> int:
        return total_points(activity_point_events(records, self._config))

    async def award_badges(
        self, student_id: str, context: BadgeContext, *, now: datetime
    ) -> list[BadgeAward]:
        """Insert every satisfied badge the student does not hold yet.

        Returns the newly stored awards.  Re-running with the same context
        stores nothing.
        """
        held = {a.badge_id for a in await self.badge_repo.list_for_student(student_id)}
        new_awards = []
        for badge_id in evaluate_badges(context):
            if badge_id in held:
                continue
            award = BadgeAward(student_id=student_id, badge_id=badge_id, earned_at=now)
            if await self.badge_repo.award(award):
                new_awards.append(award)
                logger.info(
                    "Badge awarded: student=%s badge=%s",
                    student_id,
                    badge_id,
                    extra={"student_id": student_id},
                )
        return new_awards

    async def build_profile(
        self,
        student_id: str,
        records: list[CompletionRecord],
        context: BadgeContext,
        *,
        now: datetime,
    ) -> GamificationProfile:
        """Profile for one student, awarding any badge the context now satisfies.

        The write path awards badges after each completion, but skips it
        when the catalog is down.  Awarding here is how those deferred badges
        catch up; for a student whose badges are current it stores nothing.
        """
        await self.award_badges(student_id, context, now=now)
        badges = await self.badge_repo.list_for_student(student_id)

        events = activity_point_events(records, self._config) + badge_point_events(badges)
        total = total_points(events)
        info = level_for_points(
            total, self._config.level_base_points, self._config.level_multiplier
        )
        return GamificationProfile(
            student_id=student_id,
            total_points=total,
            level=info.level,
            badges=tuple(badges),
            points_into_level=info.points_into_level,
            points_for_next_level=info.points_for_next_level,
            level_progress=info.level_progress,
            point_events=tuple(events),
        )
