"""
Daily agenda summary.

Every evening, emails each published provider's owner the next day's pending
and confirmed appointments. When a provider has several active members, each
member with a valid address also receives their own appointments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.run_context import RunContext
from ..core.timezone_utils import ensure_utc, local_date, local_day_bounds_utc, utc_now
from ..database import SessionFactory, session_scope
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.provider_repository import MemberRepository, ProviderRepository
from ..repositories.user_repository import UserRepository
from ..utils.fan_out import fan_out
from .base import BaseService
from .email_service import EmailService, is_valid_email
from .template_registry import TemplateRegistry

DAY_FORMAT = "%A %d %B %Y"


@dataclass
class AgendaProviderResult:
    provider_id: str
    business_name: Optional[str]
    appointments: int = 0
    emails_sent: int = 0
    email_errors: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "business_name": self.business_name,
            "appointments": self.appointments,
            "emails_sent": self.emails_sent,
            "email_errors": self.email_errors,
            "error": self.error,
        }


@dataclass
class AgendaSummary:
    day: Optional[date] = None
    providers: int = 0
    providers_processed: int = 0
    emails_sent: int = 0
    errors: int = 0
    duration_ms: int = 0
    results: List[AgendaProviderResult] = field(default_factory=list)
    operations: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.isoformat() if self.day else None,
            "providers": self.providers,
            "providers_processed": self.providers_processed,
            "emails_sent": self.emails_sent,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
            "results": [result.to_dict() for result in self.results],
            "operations": self.operations,
        }


def _row(appointment: Any) -> Dict[str, Any]:
    return {
        "client_name": appointment.client_name or "Client",
        "service_name": appointment.service_name,
        "start_at": appointment.start_at,
        "duration_minutes": appointment.duration_minutes,
        "member_id": appointment.member_id,
    }


class AgendaSummaryService(BaseService):
    def __init__(
        self,
        db: Session,
        session_factory: Optional[SessionFactory] = None,
        run_context: Optional[RunContext] = None,
        email_service: Optional[EmailService] = None,
        max_concurrency: Optional[int] = None,
    ):
        super().__init__(db, run_context or RunContext(name="daily_agenda_summary"))
        self.session_factory = session_factory
        self.email_service = email_service or EmailService(run_context=self.run_context)
        self.max_concurrency = max_concurrency or settings.sweep_max_concurrency
        self.provider_repository = ProviderRepository(db, self.run_context)

    def _send(self, to_email: str, subject: str, context: Dict[str, Any], result: AgendaProviderResult) -> None:
        try:
            if self.email_service.send_email(to_email, subject, TemplateRegistry.AGENDA_SUMMARY, context):
                result.emails_sent += 1
        except Exception as exc:
            self.logger.error(f"[{result.business_name}] Agenda email to {to_email} failed: {exc}")
            result.email_errors += 1

    def _summarize_provider(
        self, provider: Tuple[str, Optional[str]], bounds: Tuple[datetime, datetime], day_label: str
    ) -> AgendaProviderResult:
        provider_id, business_name = provider
        result = AgendaProviderResult(provider_id=provider_id, business_name=business_name)
        with session_scope(self.session_factory) as session:
            appointments = AppointmentRepository(session, self.run_context).get_occupying_for_provider_between(
                provider_id, *bounds
            )
            if not appointments:
                self.logger.debug(f"[{business_name}] No appointments tomorrow, skipping")
                return result
            result.appointments = len(appointments)
            rows = [_row(appointment) for appointment in appointments]

            provider_row = ProviderRepository(session, self.run_context).get_by_id(provider_id)
            owner = (
                UserRepository(session, self.run_context).get_by_id(provider_row.owner_user_id)
                if provider_row
                else None
            )
            base_context = {"business_name": business_name, "day_label": day_label}
            if owner is not None and is_valid_email(owner.email):
                self._send(
                    owner.email,
                    f"Tomorrow's agenda - {len(rows)} appointments - {day_label}",
                    {**base_context, "recipient_name": owner.name or business_name, "appointments": rows},
                    result,
                )

            members = MemberRepository(session, self.run_context).get_active_members(provider_id)
            if len(members) <= 1:
                return result
            for member in members:
                if not is_valid_email(member.email):
                    continue
                member_rows = [row for row in rows if row["member_id"] == member.id]
                if not member_rows:
                    continue
                self._send(
                    member.email,
                    f"Your agenda for tomorrow - {len(member_rows)} appointments - {day_label}",
                    {**base_context, "recipient_name": member.name, "appointments": member_rows},
                    result,
                )
        return result

    @BaseService.measure_operation("send_daily_agenda_summary")
    def run(self, now: Optional[datetime] = None, provider_id: Optional[str] = None) -> AgendaSummary:
        now = ensure_utc(now) if now else utc_now()
        tomorrow = local_date(now) + timedelta(days=1)
        bounds = local_day_bounds_utc(tomorrow)
        day_label = tomorrow.strftime(DAY_FORMAT)

        providers = [
            (provider.id, provider.business_name)
            for provider in self.provider_repository.get_published()
            if provider_id is None or provider.id == provider_id
        ]
        summary = AgendaSummary(day=tomorrow, providers=len(providers))
        self.logger.info(f"Agenda summary for {day_label}: {len(providers)} published providers")

        outcomes = fan_out(
            providers,
            lambda provider: self._summarize_provider(provider, bounds, day_label),
            max_concurrency=self.max_concurrency,
            thread_name_prefix="agenda",
        )
        for outcome in outcomes:
            if outcome.ok:
                result = outcome.value
                summary.providers_processed += 1
                summary.emails_sent += result.emails_sent
                summary.errors += result.email_errors
            else:
                pid, name = outcome.item
                self.logger.error(f"[{name}] Agenda summary failed: {outcome.error}")
                result = AgendaProviderResult(provider_id=pid, business_name=name, error=str(outcome.error))
                summary.errors += 1
            summary.results.append(result)

        summary.duration_ms = self.run_context.elapsed_ms
        summary.operations = self.run_context.log_summary(self.logger)
        self.logger.info(
            f"Agenda summary done: {summary.providers_processed} providers, "
            f"{summary.emails_sent} emails sent, {summary.errors} errors"
        )
        return summary
