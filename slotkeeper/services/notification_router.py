"""
Lifecycle transition routing.

Maps an appointment write event to the deliveries it should trigger. Pure:
no preference lookups and no I/O happen here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..core.enums import AppointmentStatus, CancelledBy, Channel, NotificationKind, Recipient
from ..events.appointment_events import (
    AppointmentCreated,
    AppointmentDeleted,
    AppointmentUpdated,
)

AppointmentEvent = Union[AppointmentCreated, AppointmentUpdated, AppointmentDeleted]


@dataclass(frozen=True)
class PlannedDelivery:
    kind: NotificationKind
    recipient: Recipient
    channel: Channel

    def idempotency_key(self, event_id: str) -> str:
        return f"{event_id}:{self.kind.value}:{self.recipient.value}:{self.channel.value}"


def _cancellation(event: AppointmentUpdated) -> Optional[Tuple[NotificationKind, Recipient]]:
    if event.after.cancelled_by == CancelledBy.CLIENT.value:
        return NotificationKind.CANCELLED_BY_CLIENT, Recipient.PROVIDER
    if event.after.cancelled_by == CancelledBy.PROVIDER.value:
        return NotificationKind.CANCELLED_BY_PROVIDER, Recipient.CLIENT
    return None


def _is_cancellation(event: AppointmentUpdated) -> bool:
    return event.before.status != AppointmentStatus.CANCELLED and event.after.status == AppointmentStatus.CANCELLED


def _is_reschedule(event: AppointmentUpdated) -> bool:
    return event.start_changed and event.after.is_occupying


def classify_update(event: AppointmentUpdated) -> Optional[Tuple[NotificationKind, Recipient]]:
    """
    The single lifecycle notification an update triggers, if any.

    Rules are checked in order and the first match wins: confirmation,
    cancellation, then reschedule.
    """
    before, after = event.before, event.after

    if before.status != AppointmentStatus.CONFIRMED and after.status == AppointmentStatus.CONFIRMED:
        return NotificationKind.CONFIRMED, Recipient.CLIENT

    if _is_cancellation(event):
        return _cancellation(event)

    if _is_reschedule(event):
        return NotificationKind.RESCHEDULED, Recipient.CLIENT

    return None


def classify_email_update(event: AppointmentUpdated) -> Optional[Tuple[NotificationKind, Recipient]]:
    """Like classify_update without the confirmation rule, which is push only."""
    if _is_cancellation(event):
        return _cancellation(event)
    if _is_reschedule(event):
        return NotificationKind.RESCHEDULED, Recipient.CLIENT
    return None


def plan_push_deliveries(event: AppointmentEvent) -> List[PlannedDelivery]:
    if isinstance(event, AppointmentCreated):
        if not event.after.is_occupying:
            return []
        return [PlannedDelivery(NotificationKind.NEW_BOOKING, Recipient.PROVIDER, Channel.PUSH)]

    if isinstance(event, AppointmentUpdated):
        routed = classify_update(event)
        if routed is None:
            return []
        kind, recipient = routed
        return [PlannedDelivery(kind, recipient, Channel.PUSH)]

    return []


def plan_email_deliveries(event: AppointmentEvent) -> List[PlannedDelivery]:
    """New bookings email both parties. Updates email cancellations, then reschedules."""
    if isinstance(event, AppointmentCreated):
        if not event.after.is_occupying:
            return []
        return [
            PlannedDelivery(NotificationKind.BOOKING_RECEIVED, Recipient.CLIENT, Channel.EMAIL),
            PlannedDelivery(NotificationKind.NEW_BOOKING, Recipient.PROVIDER, Channel.EMAIL),
        ]

    if isinstance(event, AppointmentUpdated):
        routed = classify_email_update(event)
        if routed is None:
            return []
        kind, recipient = routed
        return [PlannedDelivery(kind, recipient, Channel.EMAIL)]

    return []


def plan_deliveries(event: AppointmentEvent) -> List[PlannedDelivery]:
    return [*plan_push_deliveries(event), *plan_email_deliveries(event)]
