"""Appointment write events and their publication."""

from .appointment_events import (
    AppointmentCreated,
    AppointmentDeleted,
    AppointmentSnapshot,
    AppointmentUpdated,
    AppointmentWriteEvent,
    from_snapshots,
    parse_event,
)
from .publisher import AppointmentEventPublisher

__all__ = [
    "AppointmentCreated",
    "AppointmentDeleted",
    "AppointmentEventPublisher",
    "AppointmentSnapshot",
    "AppointmentUpdated",
    "AppointmentWriteEvent",
    "from_snapshots",
    "parse_event",
]
