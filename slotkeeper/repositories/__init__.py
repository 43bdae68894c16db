"""Repository layer: data access per aggregate."""

from .appointment_repository import AppointmentRepository
from .availability_repository import ExceptionRangeRepository, WeeklyAvailabilityRepository
from .notification_delivery_repository import NotificationDeliveryRepository
from .notification_preference_repository import NotificationPreferenceRepository
from .provider_repository import MemberRepository, ProviderRepository
from .user_repository import PushTokenRepository, UserRepository

__all__ = [
    "AppointmentRepository",
    "ExceptionRangeRepository",
    "MemberRepository",
    "NotificationDeliveryRepository",
    "NotificationPreferenceRepository",
    "ProviderRepository",
    "PushTokenRepository",
    "UserRepository",
    "WeeklyAvailabilityRepository",
]
