"""Database models."""

from sqlalchemy import MetaData

from clinic_scheduler.models.appointments import appointments
from clinic_scheduler.models.date_exceptions import date_exceptions
from clinic_scheduler.models.schedule_rules import schedule_rules
from clinic_scheduler.models.unavailability_blocks import unavailability_blocks

# Combined metadata for migrations and test schema setup
metadata = MetaData()
for table in (schedule_rules, date_exceptions, unavailability_blocks, appointments):
    table.to_metadata(metadata)

__all__ = [
    "appointments",
    "date_exceptions",
    "metadata",
    "schedule_rules",
    "unavailability_blocks",
]
