# slotkeeper/services/notification_service.py
"""
Booking lifecycle notification dispatch.

Turns an appointment write event into push and email deliveries. Each planned
delivery is claimed in the delivery ledger before it is attempted, so a
redelivered event never notifies anyone twice. Deliveries are independent: a
failure on one is logged and counted without blocking the rest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import (
    Channel,
    DeliveryOutcome,
    PreferenceDecision,
    PreferenceOwner,
    Recipient,
)
from ..core.run_context import RunContext
from ..core.timezone_utils import format_local
from ..events.appointment_events import AppointmentSnapshot, AppointmentUpdated
from ..models.provider import Provider
from ..repositories.notification_delivery_repository import NotificationDeliveryRepository
from ..repositories.provider_repository import ProviderRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .email_service import CalendarEvent, EmailService
from .notification_preferences import PreferenceResolver
from .notification_router import AppointmentEvent, PlannedDelivery, plan_deliveries
from .notification_templates import NotificationTemplate, get_lifecycle_template
from .push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)

DATE_FORMAT = "%A %d %B at %H:%M"


def message_values(
    snapshot: AppointmentSnapshot, business_name: Optional[str], **extra: str
) -> Dict[str, str]:
    values = {
        "client_name": snapshot.client_name or "A client",
        "service_name": snapshot.service_name or "appointment",
        "business_name": business_name or "your provider",
        "date": format_local(snapshot.start_at, DATE_FORMAT),
    }
    values.update(extra)
    return values


def calendar_event_for(snapshot: AppointmentSnapshot, business_name: Optional[str]) -> CalendarEvent:
    end_at = snapshot.end_at or snapshot.start_at
    return CalendarEvent(
        uid=snapshot.id,
        start_at=snapshot.start_at,
        end_at=end_at,
        summary=f"{snapshot.service_name} at {business_name or 'your provider'}",
        description=f"With {business_name}" if business_name else "",
        location=snapshot.location or "",
    )


@dataclass
class DeliveryResult:
    key: str
    kind: str
    recipient: str
    channel: str
    outcome: DeliveryOutcome
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "kind": self.kind,
            "recipient": self.recipient,
            "channel": self.channel,
            "outcome": self.outcome.value,
            "detail": self.detail,
        }


@dataclass
class DispatchSummary:
    event_id: str
    results: List[DeliveryResult] = field(default_factory=list)
    duplicates: int = 0

    def count(self, outcome: DeliveryOutcome) -> int:
        return sum(1 for result in self.results if result.outcome == outcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "sent": self.count(DeliveryOutcome.SENT),
            "skipped": self.count(DeliveryOutcome.SKIPPED),
            "failed": self.count(DeliveryOutcome.FAILED),
            "duplicates": self.duplicates,
            "results": [result.to_dict() for result in self.results],
        }


class NotificationService(BaseService):
    """Dispatches lifecycle notifications for appointment writes."""

    def __init__(
        self,
        db: Session,
        run_context: Optional[RunContext] = None,
        push_service: Optional[PushNotificationService] = None,
        email_service: Optional[EmailService] = None,
        preference_resolver: Optional[PreferenceResolver] = None,
    ) -> None:
        super().__init__(db, run_context)
        self.push_service = push_service or PushNotificationService(db, self.run_context)
        self.email_service = email_service or EmailService(db, self.run_context)
        self.preferences = preference_resolver or PreferenceResolver(db, self.run_context)
        self.provider_repository = ProviderRepository(db, self.run_context)
        self.user_repository = UserRepository(db, self.run_context)
        self.delivery_repository = NotificationDeliveryRepository(db, self.run_context)

    def _claim(self, key: str, event_type: str) -> bool:
        with self.transaction():
            return self.delivery_repository.claim(key, event_type)

    @BaseService.measure_operation("dispatch_booking_event")
    def dispatch(self, event: AppointmentEvent) -> DispatchSummary:
        summary = DispatchSummary(event_id=event.event_id)
        planned = plan_deliveries(event)
        if not planned:
            self.logger.debug(f"No notifications for {event.kind} event {event.event_id}")
            return summary

        provider = self.provider_repository.get_by_id(event.provider_id)
        for delivery in planned:
            key = delivery.idempotency_key(event.event_id)
            if not self._claim(key, delivery.kind.value):
                self.logger.info(f"Delivery {key} already handled; skipping")
                summary.duplicates += 1
                continue
            summary.results.append(self._attempt(delivery, key, event, provider))

        self.logger.info(
            f"Dispatched {event.kind} event {event.event_id}: "
            f"{summary.count(DeliveryOutcome.SENT)} sent, "
            f"{summary.count(DeliveryOutcome.SKIPPED)} skipped, "
            f"{summary.count(DeliveryOutcome.FAILED)} failed, {summary.duplicates} duplicates"
        )
        return summary

    def _attempt(
        self,
        delivery: PlannedDelivery,
        key: str,
        event: AppointmentEvent,
        provider: Optional[Provider],
    ) -> DeliveryResult:
        result = DeliveryResult(
            key=key,
            kind=delivery.kind.value,
            recipient=delivery.recipient.value,
            channel=delivery.channel.value,
            outcome=DeliveryOutcome.SKIPPED,
        )
        try:
            snapshot = event.after
            template = get_lifecycle_template(delivery.kind, delivery.recipient)
            extra: Dict[str, str] = {}
            if isinstance(event, AppointmentUpdated) and event.start_changed:
                extra["old_date"] = format_local(event.before.start_at, DATE_FORMAT)
            business_name = provider.business_name if provider else None
            values = message_values(snapshot, business_name, **extra)

            if delivery.channel == Channel.PUSH:
                result.outcome, result.detail = self._send_push(
                    delivery.recipient, template, snapshot, provider, values
                )
            else:
                result.outcome, result.detail = self._send_email(
                    delivery.recipient, template, snapshot, provider, values
                )
        except Exception as exc:
            self.logger.error(f"Delivery {key} failed: {exc}", exc_info=True)
            result.outcome = DeliveryOutcome.FAILED
            result.detail = str(exc)
        return result

    def recipient_user_id(
        self, recipient: Recipient, snapshot: AppointmentSnapshot, provider: Optional[Provider]
    ) -> Optional[str]:
        if recipient == Recipient.PROVIDER:
            return provider.owner_user_id if provider else None
        return snapshot.client_id

    def push_decision(
        self,
        recipient: Recipient,
        template: NotificationTemplate,
        snapshot: AppointmentSnapshot,
    ) -> PreferenceDecision:
        if recipient == Recipient.PROVIDER:
            return self.preferences.resolve(
                PreferenceOwner.PROVIDER, snapshot.provider_id, template.kind
            )
        return self.preferences.resolve(PreferenceOwner.USER, snapshot.client_id, template.kind)

    def _send_push(
        self,
        recipient: Recipient,
        template: NotificationTemplate,
        snapshot: AppointmentSnapshot,
        provider: Optional[Provider],
        values: Dict[str, str],
    ) -> tuple[DeliveryOutcome, Optional[str]]:
        user_id = self.recipient_user_id(recipient, snapshot, provider)
        if not user_id:
            return DeliveryOutcome.SKIPPED, "no recipient account"

        decision = self.push_decision(recipient, template, snapshot)
        if not decision.permits:
            return DeliveryOutcome.SKIPPED, "disabled by preferences"

        counts = self.push_service.send_to_user(
            user_id,
            template.title,
            template.render_body(**values),
            data={"type": template.kind.value, "appointmentId": snapshot.id},
        )
        if counts["sent"] == 0:
            return DeliveryOutcome.SKIPPED, "no push tokens"
        return DeliveryOutcome.SENT, decision.value

    def recipient_email(
        self, recipient: Recipient, snapshot: AppointmentSnapshot, provider: Optional[Provider]
    ) -> Optional[str]:
        if recipient == Recipient.CLIENT:
            return snapshot.client_email
        if provider is None:
            return None
        owner = self.user_repository.get_by_id(provider.owner_user_id)
        return owner.email if owner else None

    def _send_email(
        self,
        recipient: Recipient,
        template: NotificationTemplate,
        snapshot: AppointmentSnapshot,
        provider: Optional[Provider],
        values: Dict[str, str],
    ) -> tuple[DeliveryOutcome, Optional[str]]:
        if template.email_template is None:
            return DeliveryOutcome.SKIPPED, "no email template"
        to_email = self.recipient_email(recipient, snapshot, provider)
        attachments = None
        if template.attach_calendar:
            attachments = [
                calendar_event_for(snapshot, values["business_name"]).to_attachment()
            ]
        sent = self.email_service.send_email(
            to_email,
            template.render_subject(**values),
            template.email_template,
            {**values, "appointment": snapshot, "app_url_path": f"/appointments/{snapshot.id}"},
            attachments=attachments,
        )
        if not sent:
            return DeliveryOutcome.SKIPPED, "email not sent"
        return DeliveryOutcome.SENT, None
