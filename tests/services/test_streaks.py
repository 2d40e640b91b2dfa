from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from learning_analytics.models.completion import CompletionRecord, CompletionStatus
from learning_analytics.models.warnings import WarningCode
from learning_analytics.services.streaks import (
    active_days,
    compute_streak,
    resolve_timezone,
    streak_history,
)
from tests.conftest import NOW


def _touched(lesson_id: str, at: datetime, *, completed: bool = False) -> CompletionRecord:
    return CompletionRecord(
        student_id="s-1",
        lesson_id=lesson_id,
        status=CompletionStatus.COMPLETED if completed else CompletionStatus.IN_PROGRESS,
        progress_percentage=100 if completed else 40,
        time_spent_minutes=5,
        first_started_at=at,
        last_updated_at=at,
        completed_at=at if completed else None,
    )


def _on_days(*offsets: int) -> list[CompletionRecord]:
    """One record per day, ``offset`` days before NOW."""
    return [_touched(f"l-{o}", NOW - timedelta(days=o)) for o in offsets]


def test_no_activity_is_zero_streak() -> None:
    state = compute_streak("s-1", [], now=NOW)
    assert state.current_streak_days == 0
    assert state.longest_streak_days == 0
    assert state.last_active_day is None


def test_three_consecutive_days_ending_today() -> None:
    state = compute_streak("s-1", _on_days(2, 1, 0), now=NOW)
    assert state.current_streak_days == 3
    assert state.longest_streak_days == 3


def test_gap_breaks_current_but_not_longest() -> None:
    state = compute_streak("s-1", _on_days(3, 2, 0), now=NOW)
    assert state.current_streak_days == 1
    assert state.longest_streak_days == 2
    assert state.last_active_day == NOW.date()


def test_run_ending_yesterday_is_still_current() -> None:
    state = compute_streak("s-1", _on_days(3, 2, 1), now=NOW)
    assert state.current_streak_days == 3


def test_run_ending_two_days_ago_is_broken() -> None:
    state = compute_streak("s-1", _on_days(4, 3, 2), now=NOW)
    assert state.current_streak_days == 0
    assert state.longest_streak_days == 3


def test_future_days_do_not_extend_current_run() -> None:
    # -1 is tomorrow: it would make a 3-day run ending after today.
    state = compute_streak("s-1", _on_days(1, 0, -1), now=NOW)
    assert state.current_streak_days == 2
    assert state.last_active_day == NOW.date() + timedelta(days=1)


def test_only_future_activity_is_no_current_streak() -> None:
    state = compute_streak("s-1", _on_days(-3), now=NOW)
    assert state.current_streak_days == 0
    assert state.longest_streak_days == 1


def test_multiple_records_on_one_day_count_once() -> None:
    records = _on_days(0) + [_touched("other", NOW - timedelta(hours=3))]
    state = compute_streak("s-1", records, now=NOW)
    assert state.current_streak_days == 1
    assert state.longest_streak_days == 1


def test_completion_day_counts_as_active() -> None:
    record = CompletionRecord(
        student_id="s-1",
        lesson_id="l-1",
        status=CompletionStatus.COMPLETED,
        progress_percentage=100,
        time_spent_minutes=5,
        first_started_at=NOW - timedelta(days=1),
        last_updated_at=NOW,
        completed_at=NOW - timedelta(days=1),
    )
    assert active_days([record], UTC) == [
        (NOW - timedelta(days=1)).date(),
        NOW.date(),
    ]


def test_days_are_local_to_the_student_timezone() -> None:
    # 23:30 UTC on the 13th and 00:30 UTC on the 15th are the 14th and the
    # 15th in Tokyo (+09:00), so the run is unbroken there but not in UTC.
    late = datetime(2026, 3, 13, 23, 30, tzinfo=UTC)
    early = datetime(2026, 3, 15, 0, 30, tzinfo=UTC)
    records = [_touched("a", late), _touched("b", early)]

    assert compute_streak("s-1", records, now=NOW).current_streak_days == 1
    tokyo = compute_streak("s-1", records, now=NOW, tz=ZoneInfo("Asia/Tokyo"))
    assert tokyo.current_streak_days == 2
    assert tokyo.last_active_day == date(2026, 3, 15)


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) == (UTC, None)
    tz, warning = resolve_timezone("Europe/Berlin")
    assert tz == ZoneInfo("Europe/Berlin")
    assert warning is None

    tz, warning = resolve_timezone("Mars/Olympus_Mons")
    assert tz is UTC
    assert warning is not None
    assert warning.code == WarningCode.INVALID_TIMEZONE


def test_history_covers_requested_window_oldest_first() -> None:
    records = _on_days(3, 2, 0) + [
        _touched("done", NOW - timedelta(days=2), completed=True)
    ]
    history = streak_history(records, now=NOW, days=5)

    assert [h.day for h in history] == [
        (NOW - timedelta(days=o)).date() for o in (4, 3, 2, 1, 0)
    ]
    assert [h.active for h in history] == [False, True, True, False, True]
    assert [h.streak_days for h in history] == [0, 1, 2, 0, 1]
    assert [h.lessons_completed for h in history] == [0, 0, 1, 0, 0]
