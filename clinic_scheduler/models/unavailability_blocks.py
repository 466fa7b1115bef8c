"""Unavailability blocks table model using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, Index, MetaData, Table, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

unavailability_blocks = Table(
    "unavailability_blocks",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("professional_id", UUID(as_uuid=True), nullable=False),
    Column("start_datetime", TIMESTAMP(timezone=True), nullable=False),
    Column("end_datetime", TIMESTAMP(timezone=True), nullable=False),
    Column("reason", Text, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint("end_datetime > start_datetime", name="unavailability_blocks_range_check"),
    Index(
        "idx_unavailability_blocks_professional_range",
        "professional_id",
        "start_datetime",
        "end_datetime",
    ),
)
