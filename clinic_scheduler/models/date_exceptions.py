"""Date exceptions table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

date_exceptions = Table(
    "date_exceptions",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("professional_id", UUID(as_uuid=True), nullable=False),
    Column("date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("slot_duration_minutes", Integer, nullable=False, server_default=text("30")),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint("end_time > start_time", name="date_exceptions_time_window_check"),
    CheckConstraint("slot_duration_minutes > 0", name="date_exceptions_slot_duration_check"),
    Index("idx_date_exceptions_professional_date", "professional_id", "date"),
)
