"""ORM models; importing this package registers every table on Base.metadata."""

from .appointment import Appointment
from .availability import ExceptionRange, WeeklyAvailability
from .notification import NotificationDelivery, NotificationPreference
from .provider import Member, Provider
from .user import PushToken, User

__all__ = [
    "Appointment",
    "ExceptionRange",
    "Member",
    "NotificationDelivery",
    "NotificationPreference",
    "Provider",
    "PushToken",
    "User",
]
