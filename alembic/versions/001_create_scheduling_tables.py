"""Create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def _id_column() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Weekly schedule rules
    op.create_table(
        "schedule_rules",
        _id_column(),
        sa.Column("professional_id", postgresql.UUID(), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), server_default="30", nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "valid_from", sa.Date(), server_default=sa.text("CURRENT_DATE"), nullable=False
        ),
        sa.Column("valid_until", sa.Date(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 7", name="schedule_rules_day_of_week_check"),
        sa.CheckConstraint("end_time > start_time", name="schedule_rules_time_window_check"),
        sa.CheckConstraint(
            "slot_duration_minutes > 0", name="schedule_rules_slot_duration_check"
        ),
        sa.CheckConstraint(
            "valid_until IS NULL OR valid_until >= valid_from",
            name="schedule_rules_validity_window_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_schedule_rules_professional_day",
        "schedule_rules",
        ["professional_id", "day_of_week"],
    )

    # One-off working hours on a specific date
    op.create_table(
        "date_exceptions",
        _id_column(),
        sa.Column("professional_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), server_default="30", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("end_time > start_time", name="date_exceptions_time_window_check"),
        sa.CheckConstraint(
            "slot_duration_minutes > 0", name="date_exceptions_slot_duration_check"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_date_exceptions_professional_date",
        "date_exceptions",
        ["professional_id", "date"],
    )

    # Vacation and absence periods
    op.create_table(
        "unavailability_blocks",
        _id_column(),
        sa.Column("professional_id", postgresql.UUID(), nullable=False),
        sa.Column("start_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint(
            "end_datetime > start_datetime", name="unavailability_blocks_range_check"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_unavailability_blocks_professional_range",
        "unavailability_blocks",
        ["professional_id", "start_datetime", "end_datetime"],
    )

    # Booked appointments
    op.create_table(
        "appointments",
        _id_column(),
        sa.Column("professional_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("start_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_datetime", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("is_extra_slot", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'absent')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint("end_datetime > start_datetime", name="appointments_range_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointments_professional_start",
        "appointments",
        ["professional_id", "start_datetime"],
    )
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_professional_start", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index(
        "idx_unavailability_blocks_professional_range", table_name="unavailability_blocks"
    )
    op.drop_table("unavailability_blocks")

    op.drop_index("idx_date_exceptions_professional_date", table_name="date_exceptions")
    op.drop_table("date_exceptions")

    op.drop_index("idx_schedule_rules_professional_day", table_name="schedule_rules")
    op.drop_table("schedule_rules")
