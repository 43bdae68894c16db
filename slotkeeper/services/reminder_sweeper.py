# slotkeeper/services/reminder_sweeper.py
"""
Reminder Sweeper

Hourly pass over confirmed appointments starting within the reminder window.
Each appointment gets at most one reminder: anything with a non-empty
``reminders_sent`` ledger is skipped. The ledger is re-read under a row lock
before sending and appended after the delivery attempt whether or not the
channels succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import SHORT_REMINDER_MAX_HOURS
from ..core.enums import AppointmentStatus, NotificationKind, PreferenceOwner, ReminderTier
from ..core.run_context import RunContext
from ..core.timezone_utils import ensure_utc, utc_now
from ..database import SessionFactory, session_scope
from ..events.appointment_events import AppointmentSnapshot
from ..integrations.expo_push_client import ExpoPushClient
from ..models.appointment import Appointment
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.provider_repository import ProviderRepository
from ..utils.fan_out import fan_out
from .base import BaseService
from .email_service import EmailService
from .notification_preferences import PreferenceResolver
from .notification_service import calendar_event_for, message_values
from .notification_templates import CLIENT_REMINDER_2H, CLIENT_REMINDER_24H
from .push_notification_service import PushNotificationService


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def reminder_tier(minutes_until: float, window_hours: int) -> Optional[ReminderTier]:
    hours_until = minutes_until / 60
    if hours_until <= SHORT_REMINDER_MAX_HOURS:
        return ReminderTier.TWO_HOURS
    if hours_until <= window_hours:
        return ReminderTier.DAY_BEFORE
    return None


def time_label(minutes_until: float) -> str:
    """Human label for how soon an appointment starts, e.g. "in 2h05"."""
    if minutes_until < 60:
        minutes = _round_half_up(minutes_until)
        return "in 1 minute" if minutes <= 1 else f"in {minutes} minutes"

    hours = int(minutes_until // 60)
    minutes = _round_half_up(minutes_until - hours * 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    if minutes == 0:
        return "in 1 hour" if hours == 1 else f"in {hours} hours"
    return f"in {hours}h{minutes:02d}"


@dataclass
class ReminderItemResult:
    appointment_id: str
    client_name: Optional[str]
    tier: Optional[ReminderTier]
    push_sent: bool = False
    email_sent: bool = False
    error: Optional[str] = None
    already_handled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "client_name": self.client_name,
            "tier": self.tier.value if self.tier else None,
            "push_sent": self.push_sent,
            "email_sent": self.email_sent,
            "error": self.error,
            "already_handled": self.already_handled,
        }


@dataclass
class ReminderSummary:
    found: int = 0
    due: int = 0
    sent: int = 0
    errors: int = 0
    skipped: int = 0
    duration_ms: int = 0
    results: List[ReminderItemResult] = field(default_factory=list)
    operations: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "due": self.due,
            "sent": self.sent,
            "errors": self.errors,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "results": [result.to_dict() for result in self.results],
            "operations": self.operations,
        }


@dataclass(frozen=True)
class _DueReminder:
    snapshot: AppointmentSnapshot
    tier: ReminderTier
    minutes_until: float


class ReminderSweeper(BaseService):
    """Sends at most one reminder per confirmed appointment."""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[SessionFactory] = None,
        run_context: Optional[RunContext] = None,
        expo_client: Optional[ExpoPushClient] = None,
        email_service: Optional[EmailService] = None,
        max_concurrency: Optional[int] = None,
    ):
        super().__init__(db, run_context or RunContext(name="booking_reminders"))
        self.session_factory = session_factory
        self.expo_client = expo_client or ExpoPushClient()
        self.email_service = email_service or EmailService(run_context=self.run_context)
        self.max_concurrency = max_concurrency or settings.sweep_max_concurrency
        self.window_hours = settings.reminder_window_hours
        self.appointment_repository = AppointmentRepository(db, self.run_context)

    def _select_due(
        self, appointments: List[Appointment], now: datetime, summary: ReminderSummary
    ) -> List[_DueReminder]:
        due: List[_DueReminder] = []
        for appointment in appointments:
            if appointment.reminders_sent:
                summary.skipped += 1
                continue
            minutes_until = (appointment.start_at - now).total_seconds() / 60
            tier = reminder_tier(minutes_until, self.window_hours)
            if tier is None:
                continue
            due.append(_DueReminder(AppointmentSnapshot.from_model(appointment), tier, minutes_until))
        return due

    def _send_one(self, reminder: _DueReminder, now: datetime) -> ReminderItemResult:
        snapshot = reminder.snapshot
        result = ReminderItemResult(
            appointment_id=snapshot.id, client_name=snapshot.client_name, tier=reminder.tier
        )
        template = CLIENT_REMINDER_2H if reminder.tier == ReminderTier.TWO_HOURS else CLIENT_REMINDER_24H

        with session_scope(self.session_factory) as session:
            appointments = AppointmentRepository(session, self.run_context)
            # Row stays locked until the ledger append commits
            current = appointments.lock_for_reminder(snapshot.id)
            if (
                current is None
                or current.reminders_sent
                or current.status != AppointmentStatus.CONFIRMED.value
            ):
                self.logger.info(f"Reminder for {snapshot.id} already handled; skipping")
                result.already_handled = True
                return result

            provider = ProviderRepository(session, self.run_context).get_by_id(snapshot.provider_id)
            business_name = provider.business_name if provider else None
            values = message_values(
                snapshot, business_name, time_label=time_label(reminder.minutes_until)
            )

            if snapshot.client_id:
                try:
                    decision = PreferenceResolver(session, self.run_context).resolve(
                        PreferenceOwner.USER, snapshot.client_id, NotificationKind.REMINDER
                    )
                    if decision.permits:
                        counts = PushNotificationService(
                            session, self.run_context, client=self.expo_client
                        ).send_to_user(
                            snapshot.client_id,
                            template.title,
                            template.render_body(**values),
                            data={"type": template.kind.value, "appointmentId": snapshot.id},
                        )
                        result.push_sent = counts["sent"] > 0
                except Exception as exc:
                    self.logger.error(f"Reminder push failed for {snapshot.id}: {exc}")

            try:
                result.email_sent = self.email_service.send_email(
                    snapshot.client_email,
                    template.render_subject(**values),
                    template.email_template,
                    {**values, "appointment": snapshot, "tier": reminder.tier.value},
                    attachments=[calendar_event_for(snapshot, business_name).to_attachment()],
                )
            except Exception as exc:
                self.logger.error(f"Reminder email failed for {snapshot.id}: {exc}")

            appointments.append_reminder_sent(snapshot.id, now.isoformat())
        return result

    @BaseService.measure_operation("send_booking_reminders")
    def run(self, now: Optional[datetime] = None, provider_id: Optional[str] = None) -> ReminderSummary:
        now = ensure_utc(now) if now else utc_now()
        window_end = now + timedelta(hours=self.window_hours)
        appointments = self.appointment_repository.get_confirmed_starting_between(
            now, window_end, provider_id=provider_id
        )
        summary = ReminderSummary(found=len(appointments))
        due = self._select_due(appointments, now, summary)
        summary.due = len(due)
        self.logger.info(
            f"Reminders: {summary.found} confirmed in window, {summary.due} due, "
            f"{summary.skipped} already reminded"
        )

        outcomes = fan_out(
            due,
            lambda reminder: self._send_one(reminder, now),
            max_concurrency=self.max_concurrency,
            thread_name_prefix="reminders",
        )
        for outcome in outcomes:
            if outcome.ok:
                if outcome.value.already_handled:
                    summary.skipped += 1
                else:
                    summary.sent += 1
                summary.results.append(outcome.value)
            else:
                snapshot = outcome.item.snapshot
                self.logger.error(f"Reminder failed for appointment {snapshot.id}: {outcome.error}")
                summary.errors += 1
                summary.results.append(
                    ReminderItemResult(
                        appointment_id=snapshot.id,
                        client_name=snapshot.client_name,
                        tier=outcome.item.tier,
                        error=str(outcome.error),
                    )
                )

        summary.duration_ms = self.run_context.elapsed_ms
        summary.operations = self.run_context.log_summary(self.logger)
        self.logger.info(
            f"Reminders done: {summary.sent} sent, {summary.errors} errors, "
            f"{summary.skipped} skipped in {summary.duration_ms}ms"
        )
        return summary
