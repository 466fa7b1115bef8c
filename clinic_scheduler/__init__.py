"""Availability and scheduling engine for medical office appointment booking."""
