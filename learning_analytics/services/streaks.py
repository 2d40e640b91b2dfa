"""Learning streaks over calendar days in the student's timezone.

A day is active when any ledger record was last updated, or completed,
on that local date.  Everything takes ``now`` explicitly; nothing here
reads the clock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from learning_analytics.models.analytics import DailyActivity, StreakState
from learning_analytics.models.completion import CompletionRecord
from learning_analytics.models.warnings import AnalyticsWarning, WarningCode

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def resolve_timezone(tz_name: str | None) -> tuple[tzinfo, AnalyticsWarning | None]:
    """Map an IANA name to a tzinfo.  Unset means UTC; unknown means UTC plus a warning."""
    if not tz_name:
        return UTC, None
    try:
        return ZoneInfo(tz_name), None
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
        return UTC, AnalyticsWarning(
            code=WarningCode.INVALID_TIMEZONE,
            entity_type="student",
            entity_id=tz_name,
            message=f"unknown timezone {tz_name!r}, using UTC",
        )


def active_days(records: Iterable[CompletionRecord], tz: tzinfo) -> list[date]:
    days: set[date] = set()
    for record in records:
        days.add(record.last_updated_at.astimezone(tz).date())
        if record.completed_at is not None:
            days.add(record.completed_at.astimezone(tz).date())
    return sorted(days)


def _runs(days: list[date]) -> dict[date, int]:
    """Length of the consecutive run ending at each active day."""
    runs: dict[date, int] = {}
    previous: date | None = None
    for day in days:
        if previous is not None and day - previous == _ONE_DAY:
            runs[day] = runs[previous] + 1
        else:
            runs[day] = 1
        previous = day
    return runs


def compute_streak(
    student_id: str,
    records: Iterable[CompletionRecord],
    *,
    now: datetime,
    tz: tzinfo = UTC,
) -> StreakState:
    days = active_days(records, tz)
    if not days:
        return StreakState(
            student_id=student_id,
            current_streak_days=0,
            longest_streak_days=0,
            last_active_day=None,
        )

    runs = _runs(days)
    today = now.astimezone(tz).date()
    # occurred_at is client-supplied; days after today never extend the current run.
    recent = [d for d in days if d <= today]
    current = 0
    # A run still counts if the student has not studied yet today.
    if recent and recent[-1] >= today - _ONE_DAY:
        current = runs[recent[-1]]
    return StreakState(
        student_id=student_id,
        current_streak_days=current,
        longest_streak_days=max(runs.values()),
        last_active_day=days[-1],
    )


def streak_history(
    records: Iterable[CompletionRecord],
    *,
    now: datetime,
    tz: tzinfo = UTC,
    days: int = 30,
) -> list[DailyActivity]:
    """Daily activity for the last ``days`` local days, oldest first."""
    records = list(records)
    runs = _runs(active_days(records, tz))

    completions: dict[date, int] = {}
    for record in records:
        if record.completed_at is not None:
            day = record.completed_at.astimezone(tz).date()
            completions[day] = completions.get(day, 0) + 1

    today = now.astimezone(tz).date()
    history = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        history.append(
            DailyActivity(
                day=day,
                lessons_completed=completions.get(day, 0),
                active=day in runs,
                streak_days=runs.get(day, 0),
            )
        )
    return history
