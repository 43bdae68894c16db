"""Push and email copy for lifecycle notifications and reminders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..core.enums import NotificationKind, Recipient
from .template_registry import TemplateRegistry


@dataclass(frozen=True)
class NotificationTemplate:
    kind: NotificationKind
    recipient: Recipient
    title: str
    body_template: str
    email_template: TemplateRegistry | None = None
    email_subject_template: Optional[str] = None
    attach_calendar: bool = False

    def render_body(self, **values: str) -> str:
        return self.body_template.format(**values)

    def render_subject(self, **values: str) -> str:
        return (self.email_subject_template or self.title).format(**values)


PROVIDER_NEW_BOOKING = NotificationTemplate(
    kind=NotificationKind.NEW_BOOKING,
    recipient=Recipient.PROVIDER,
    title="New booking",
    body_template="{client_name} - {service_name} on {date}",
    email_template=TemplateRegistry.BOOKING_NEW_PROVIDER,
    email_subject_template="New booking: {service_name} with {client_name}",
)

CLIENT_BOOKING_RECEIVED = NotificationTemplate(
    kind=NotificationKind.BOOKING_RECEIVED,
    recipient=Recipient.CLIENT,
    title="Booking received",
    body_template="Your {service_name} booking at {business_name} on {date} has been received",
    email_template=TemplateRegistry.BOOKING_RECEIVED_CLIENT,
    email_subject_template="Your booking - {service_name}",
    attach_calendar=True,
)

CLIENT_BOOKING_CONFIRMED = NotificationTemplate(
    kind=NotificationKind.CONFIRMED,
    recipient=Recipient.CLIENT,
    title="Booking confirmed",
    body_template="Your {service_name} appointment is confirmed for {date}",
)

PROVIDER_CANCELLED_BY_CLIENT = NotificationTemplate(
    kind=NotificationKind.CANCELLED_BY_CLIENT,
    recipient=Recipient.PROVIDER,
    title="Booking cancelled",
    body_template="{client_name} cancelled their appointment on {date}",
    email_template=TemplateRegistry.BOOKING_CANCELLED_PROVIDER,
    email_subject_template="Booking cancelled: {service_name} with {client_name}",
)

CLIENT_CANCELLED_BY_PROVIDER = NotificationTemplate(
    kind=NotificationKind.CANCELLED_BY_PROVIDER,
    recipient=Recipient.CLIENT,
    title="Booking cancelled",
    body_template="Your {service_name} appointment on {date} was cancelled by {business_name}",
    email_template=TemplateRegistry.BOOKING_CANCELLED_CLIENT,
    email_subject_template="Booking cancelled - {service_name}",
)

CLIENT_BOOKING_RESCHEDULED = NotificationTemplate(
    kind=NotificationKind.RESCHEDULED,
    recipient=Recipient.CLIENT,
    title="Booking rescheduled",
    body_template="Your {service_name} appointment was moved to {date}",
    email_template=TemplateRegistry.BOOKING_RESCHEDULED_CLIENT,
    email_subject_template="Booking moved - {service_name}",
    attach_calendar=True,
)

CLIENT_REMINDER_24H = NotificationTemplate(
    kind=NotificationKind.REMINDER,
    recipient=Recipient.CLIENT,
    title="Appointment reminder",
    body_template="Reminder: your {service_name} appointment is tomorrow, {date}",
    email_template=TemplateRegistry.BOOKING_REMINDER_CLIENT,
    email_subject_template="Reminder: {service_name} tomorrow",
    attach_calendar=True,
)

CLIENT_REMINDER_2H = NotificationTemplate(
    kind=NotificationKind.REMINDER,
    recipient=Recipient.CLIENT,
    title="Appointment reminder",
    body_template="Reminder: your {service_name} appointment is {time_label} ({date})",
    email_template=TemplateRegistry.BOOKING_REMINDER_CLIENT,
    email_subject_template="Reminder: {service_name} {time_label}",
    attach_calendar=True,
)

LIFECYCLE_TEMPLATES: Dict[Tuple[NotificationKind, Recipient], NotificationTemplate] = {
    (template.kind, template.recipient): template
    for template in (
        PROVIDER_NEW_BOOKING,
        CLIENT_BOOKING_RECEIVED,
        CLIENT_BOOKING_CONFIRMED,
        PROVIDER_CANCELLED_BY_CLIENT,
        CLIENT_CANCELLED_BY_PROVIDER,
        CLIENT_BOOKING_RESCHEDULED,
    )
}


def get_lifecycle_template(kind: NotificationKind, recipient: Recipient) -> NotificationTemplate:
    return LIFECYCLE_TEMPLATES[(kind, recipient)]
