"""SQLAlchemy table definitions.

These back the frozen dataclasses in learning_analytics/models/.  Only
ledger facts and badge awards are stored; every other number is derived on
read.  Repos convert between rows and dataclasses.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from learning_analytics.db.engine import Base


class CompletionRecordRow(Base):
    __tablename__ = "completion_records"

    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    lesson_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # NOT_STARTED|IN_PROGRESS|COMPLETED
    progress_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    time_spent_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    best_quiz_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    first_started_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Hierarchy snapshot at first resolvable write
    course_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    module_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class BadgeAwardRow(Base):
    __tablename__ = "badge_awards"

    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    badge_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    earned_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
