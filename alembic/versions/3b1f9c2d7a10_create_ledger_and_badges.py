"""create completion_records and badge_awards

Revision ID: 3b1f9c2d7a10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f9c2d7a10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "completion_records",
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("lesson_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("progress_percentage", sa.Float(), nullable=False),
        sa.Column("time_spent_minutes", sa.Float(), nullable=False),
        sa.Column("best_quiz_score", sa.Float(), nullable=True),
        sa.Column("first_started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("course_id", sa.String(length=128), nullable=True),
        sa.Column("module_id", sa.String(length=128), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("student_id", "lesson_id"),
    )
    op.create_index(
        "ix_completion_records_last_updated_at",
        "completion_records",
        ["last_updated_at"],
    )

    op.create_table(
        "badge_awards",
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("badge_id", sa.String(length=64), nullable=False),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("student_id", "badge_id"),
    )


def downgrade() -> None:
    op.drop_table("badge_awards")
    op.drop_index("ix_completion_records_last_updated_at", table_name="completion_records")
    op.drop_table("completion_records")
