"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    MetaData,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

appointments = Table(
    "appointments",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    # Ownership / references
    Column("professional_id", UUID(as_uuid=True), nullable=False),
    Column("patient_id", UUID(as_uuid=True), nullable=False),
    # Booked interval, half-open [start, end)
    Column("start_datetime", TIMESTAMP(timezone=True), nullable=False),
    Column("end_datetime", TIMESTAMP(timezone=True), nullable=False),
    # Status management
    Column("status", Text, nullable=False, server_default="pending"),
    Column("is_extra_slot", Boolean, nullable=False, server_default=text("false")),
    Column("reason", Text, nullable=True),
    # Cancellation
    Column("cancelled_by", UUID(as_uuid=True), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'absent')",
        name="appointments_status_check",
    ),
    CheckConstraint("end_datetime > start_datetime", name="appointments_range_check"),
    Index("idx_appointments_professional_start", "professional_id", "start_datetime"),
    Index("idx_appointments_patient_id", "patient_id"),
)
