# slotkeeper/core/enums.py
"""
Core enums for the booking subsystem.

String-valued so they round-trip through JSON payloads and database columns
unchanged.
"""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def occupying(cls) -> tuple["AppointmentStatus", ...]:
        """Statuses that consume capacity and are eligible for reminders."""
        return (cls.PENDING, cls.CONFIRMED)


class CancelledBy(str, Enum):
    CLIENT = "client"
    PROVIDER = "provider"


class Recipient(str, Enum):
    """Who receives a lifecycle notification."""

    PROVIDER = "provider"
    CLIENT = "client"


class Channel(str, Enum):
    PUSH = "push"
    EMAIL = "email"


class NotificationKind(str, Enum):
    """Lifecycle notification types."""

    NEW_BOOKING = "new_booking"
    BOOKING_RECEIVED = "booking_received"
    CONFIRMED = "booking_confirmed"
    CANCELLED_BY_CLIENT = "booking_cancelled_by_client"
    CANCELLED_BY_PROVIDER = "booking_cancelled_by_provider"
    RESCHEDULED = "booking_rescheduled"
    REMINDER = "booking_reminder"


class ReminderTier(str, Enum):
    TWO_HOURS = "2h"
    DAY_BEFORE = "24h"


class PreferenceOwner(str, Enum):
    PROVIDER = "provider"
    USER = "user"


class PreferenceDecision(str, Enum):
    """
    Outcome of a notification preference check.

    FAIL_OPEN means the preferences could not be read and the notification is
    sent anyway.
    """

    ALLOW = "allow"
    DENY = "deny"
    FAIL_OPEN = "fail_open"

    @property
    def permits(self) -> bool:
        return self is not PreferenceDecision.DENY


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"
