"""Weekly schedule rules table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Index,
    Integer,
    MetaData,
    SmallInteger,
    Table,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

schedule_rules = Table(
    "schedule_rules",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("professional_id", UUID(as_uuid=True), nullable=False),
    # 0-6 = Sunday..Saturday, 7 = no fixed weekday
    Column("day_of_week", SmallInteger, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("slot_duration_minutes", Integer, nullable=False, server_default=text("30")),
    Column("active", Boolean, nullable=False, server_default=text("true")),
    # Validity window (inclusive on both ends, open-ended when valid_until is NULL)
    Column("valid_from", Date, nullable=False, server_default=text("CURRENT_DATE")),
    Column("valid_until", Date, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint("day_of_week BETWEEN 0 AND 7", name="schedule_rules_day_of_week_check"),
    CheckConstraint("end_time > start_time", name="schedule_rules_time_window_check"),
    CheckConstraint("slot_duration_minutes > 0", name="schedule_rules_slot_duration_check"),
    CheckConstraint(
        "valid_until IS NULL OR valid_until >= valid_from",
        name="schedule_rules_validity_window_check",
    ),
    Index("idx_schedule_rules_professional_day", "professional_id", "day_of_week"),
)
