# backend/alembic/versions/002_calls_and_group_sessions.py
"""Calls, group sessions and participants

Revision ID: 002_calls_and_group_sessions
Revises: 001_users_and_availability
Create Date: 2026-05-04 00:00:01.000000

Lifecycle marker columns (minimum_check_at and the reminder timestamps) are
created here together with partial indexes on Postgres that keep the
lifecycle passes' candidate scans small.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002_calls_and_group_sessions"
down_revision: Union[str, None] = "001_users_and_availability"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create booking tables."""
    print("Creating calls and group session tables...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"

    print("Creating calls table...")
    op.create_table(
        "calls",
        sa.Column("id", sa.String(length=26), nullable=False),
        sa.Column("patient_id", sa.String(length=26), nullable=False),
        sa.Column("mentor_id", sa.String(length=26), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("mentor_payout", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="REQUESTED"),
        sa.Column("video_room_url", sa.String(length=500), nullable=True),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("day_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hour_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", sa.String(length=26), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["cancelled_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stripe_session_id"),
        sa.CheckConstraint(
            "status IN ('REQUESTED', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'NO_SHOW')",
            name="ck_calls_status",
        ),
        sa.CheckConstraint("duration_minutes IN (30, 60)", name="ck_calls_duration"),
    )
    op.create_index("ix_calls_id", "calls", ["id"])
    op.create_index("ix_calls_mentor_scheduled", "calls", ["mentor_id", "scheduled_at"])
    op.create_index("ix_calls_status_scheduled", "calls", ["status", "scheduled_at"])

    print("Creating group_sessions table...")
    op.create_table(
        "group_sessions",
        sa.Column("id", sa.String(length=26), nullable=False),
        sa.Column("mentor_id", sa.String(length=26), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("procedure_type", sa.String(length=100), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("min_attendees", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("price_per_person", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="SCHEDULED"),
        sa.Column("minimum_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("day_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hour_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("video_room_url", sa.String(length=500), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('SCHEDULED', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_group_sessions_status",
        ),
        sa.CheckConstraint("capacity > 0", name="ck_group_sessions_capacity"),
        sa.CheckConstraint("min_attendees > 0", name="ck_group_sessions_min_attendees"),
    )
    op.create_index("ix_group_sessions_mentor_scheduled", "group_sessions", ["mentor_id", "scheduled_at"])
    op.create_index("ix_group_sessions_status_scheduled", "group_sessions", ["status", "scheduled_at"])

    if is_postgres:
        print("Creating partial indexes for lifecycle passes...")
        op.create_index(
            "ix_group_sessions_pending_minimum_check",
            "group_sessions",
            ["scheduled_at"],
            postgresql_where=sa.text("status = 'SCHEDULED' AND minimum_check_at IS NULL"),
        )
        op.create_index(
            "ix_group_sessions_pending_day_reminder",
            "group_sessions",
            ["scheduled_at"],
            postgresql_where=sa.text("status = 'CONFIRMED' AND day_reminder_sent_at IS NULL"),
        )

    print("Creating group_session_participants table...")
    op.create_table(
        "group_session_participants",
        sa.Column("id", sa.String(length=26), nullable=False),
        sa.Column("session_id", sa.String(length=26), nullable=False),
        sa.Column("user_id", sa.String(length=26), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="REGISTERED"),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["group_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "user_id", name="uq_group_session_participants_session_user"),
        sa.CheckConstraint(
            "status IN ('REGISTERED', 'ATTENDED', 'CANCELLED', 'REFUNDED')",
            name="ck_group_session_participants_status",
        ),
    )
    op.create_index(
        "ix_group_session_participants_session_id",
        "group_session_participants",
        ["session_id"],
    )


def downgrade() -> None:
    """Drop booking tables."""
    print("Dropping calls and group session tables...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"

    op.drop_index("ix_group_session_participants_session_id", table_name="group_session_participants")
    op.drop_table("group_session_participants")

    if is_postgres:
        op.drop_index("ix_group_sessions_pending_day_reminder", table_name="group_sessions")
        op.drop_index("ix_group_sessions_pending_minimum_check", table_name="group_sessions")
    op.drop_index("ix_group_sessions_status_scheduled", table_name="group_sessions")
    op.drop_index("ix_group_sessions_mentor_scheduled", table_name="group_sessions")
    op.drop_table("group_sessions")

    op.drop_index("ix_calls_status_scheduled", table_name="calls")
    op.drop_index("ix_calls_mentor_scheduled", table_name="calls")
    op.drop_index("ix_calls_id", table_name="calls")
    op.drop_table("calls")
