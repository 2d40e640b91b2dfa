from __future__ import annotations

from datetime import timedelta

import pytest

from learning_analytics.models.analytics import PacingStatus
from learning_analytics.models.catalog import EnrollmentWindow
from learning_analytics.services.pacing import (
    classify,
    compute_pacing,
    days_elapsed,
    expected_percentage,
)
from tests.conftest import NOW


def _window(days_ago: float, target: int = 20) -> EnrollmentWindow:
    return EnrollmentWindow(
        student_id="s-1",
        course_id="py-101",
        enrolled_at=NOW - timedelta(days=days_ago),
        target_duration_days=target,
    )


@pytest.mark.parametrize(
    "actual, expected_status",
    [
        (50, PacingStatus.ON_TRACK),
        (70, PacingStatus.AHEAD),
        (30, PacingStatus.BEHIND),
        (55, PacingStatus.ON_TRACK),
        (45, PacingStatus.ON_TRACK),
    ],
)
def test_halfway_through_the_window(actual: float, expected_status: PacingStatus) -> None:
    result = compute_pacing(actual, _window(10), now=NOW)
    assert result.expected_percentage == 50
    assert result.status == expected_status
    assert result.deviation == actual - 50
    assert result.days_elapsed == 10
    assert result.days_remaining == 10


def test_partial_days_are_floored() -> None:
    assert days_elapsed(NOW - timedelta(days=3, hours=23), NOW) == 3


def test_enrollment_in_the_future_counts_as_day_zero() -> None:
    result = compute_pacing(0, _window(-2), now=NOW)
    assert result.days_elapsed == 0
    assert result.expected_percentage == 0
    assert result.status == PacingStatus.ON_TRACK


def test_expected_is_capped_after_the_deadline() -> None:
    result = compute_pacing(80, _window(45), now=NOW)
    assert result.expected_percentage == 100
    assert result.days_remaining == 0
    assert result.status == PacingStatus.BEHIND


def test_zero_target_expects_everything_now() -> None:
    assert expected_percentage(0, 0) == 100.0
    assert compute_pacing(100, _window(0, target=0), now=NOW).status == PacingStatus.ON_TRACK


def test_thresholds_are_exclusive() -> None:
    assert classify(5.0, ahead_threshold=5, behind_threshold=5) == PacingStatus.ON_TRACK
    assert classify(-5.0, ahead_threshold=5, behind_threshold=5) == PacingStatus.ON_TRACK
    assert classify(5.01, ahead_threshold=5, behind_threshold=5) == PacingStatus.AHEAD
    assert classify(-5.01, ahead_threshold=5, behind_threshold=5) == PacingStatus.BEHIND


def test_custom_thresholds() -> None:
    result = compute_pacing(58, _window(10), now=NOW, ahead_threshold=10)
    assert result.status == PacingStatus.ON_TRACK


def test_values_are_rounded_to_two_places() -> None:
    result = compute_pacing(100 / 3, _window(1, target=3), now=NOW)
    assert result.expected_percentage == 33.33
    assert result.actual_percentage == 33.33
    assert result.deviation == 0
