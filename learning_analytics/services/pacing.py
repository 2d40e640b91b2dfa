"""Smart pacing: is the student ahead of, on, or behind their schedule?

Expected progress grows linearly from 0 at enrollment to 100 at
enrolled_at + target_duration_days.  Days are whole elapsed 24h periods
counted from the enrollment instant, so the answer does not depend on
the server's timezone.
"""

from __future__ import annotations

import math
from datetime import datetime

from learning_analytics.models.analytics import PacingResult, PacingStatus
from learning_analytics.models.catalog import EnrollmentWindow

_SECONDS_PER_DAY = 86_400


def days_elapsed(enrolled_at: datetime, now: datetime) -> int:
    seconds = (now - enrolled_at).total_seconds()
    return max(0, math.floor(seconds / _SECONDS_PER_DAY))


def expected_percentage(elapsed: int, target_duration_days: int) -> float:
    # A zero or negative target means the whole course is due now.
    if target_duration_days <= 0:
        return 100.0
    return min(100.0, elapsed / target_duration_days * 100)


def classify(deviation: float, *, ahead_threshold: float, behind_threshold: float) -> PacingStatus:
    if deviation > ahead_threshold:
        return PacingStatus.AHEAD
    if deviation < -behind_threshold:
        return PacingStatus.BEHIND
    return PacingStatus.ON_TRACK


def compute_pacing(
    actual_percentage: float,
    enrollment: EnrollmentWindow,
    *,
    now: datetime,
    ahead_threshold: float = 5.0,
    behind_threshold: float = 5.0,
) -> PacingResult:
    elapsed = days_elapsed(enrollment.enrolled_at, now)
    expected = round(expected_percentage(elapsed, enrollment.target_duration_days), 2)
    actual = round(actual_percentage, 2)
    # Status comes from the rounded deviation so it agrees with what is shown.
    deviation = round(actual - expected, 2)
    return PacingResult(
        expected_percentage=expected,
        actual_percentage=actual,
        deviation=deviation,
        status=classify(
            deviation,
            ahead_threshold=ahead_threshold,
            behind_threshold=behind_threshold,
        ),
        days_elapsed=elapsed,
        days_remaining=max(0, enrollment.target_duration_days - elapsed),
    )
