# slotkeeper/services/next_slot_service.py
"""
Next Slot Service

Loads a provider's schedule inputs, runs the availability calculator and
writes the memoized ``next_available_slot`` back to the provider. Shared by the
write-triggered invalidator, the staleness sweeper and the admin surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, Dict, Optional

import pytz
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundException
from ..core.run_context import RunContext
from ..core.timezone_utils import (
    ensure_utc,
    get_business_timezone,
    local_date,
    local_day_start_utc,
    utc_now,
)
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.availability_repository import (
    ExceptionRangeRepository,
    WeeklyAvailabilityRepository,
)
from ..repositories.provider_repository import MemberRepository, ProviderRepository
from .availability_calculator import (
    BlackoutRange,
    BookedInterval,
    DaySchedule,
    compute_next_available,
)
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotRefreshResult:
    provider_id: str
    business_name: Optional[str]
    previous_slot: Optional[date]
    new_slot: Optional[date]

    @property
    def changed(self) -> bool:
        return self.previous_slot != self.new_slot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "business_name": self.business_name,
            "previous_slot": self.previous_slot.isoformat() if self.previous_slot else None,
            "new_slot": self.new_slot.isoformat() if self.new_slot else None,
            "changed": self.changed,
        }


class NextSlotService(BaseService):
    """Computes and caches the next bookable day of a provider."""

    def __init__(
        self,
        db: Session,
        run_context: Optional[RunContext] = None,
        tz: Optional[pytz.BaseTzInfo] = None,
        horizon_days: Optional[int] = None,
    ):
        super().__init__(db, run_context)
        self.tz = tz or get_business_timezone()
        self.horizon_days = horizon_days or settings.slot_horizon_days
        self.provider_repository = ProviderRepository(db, self.run_context)
        self.member_repository = MemberRepository(db, self.run_context)
        self.weekly_repository = WeeklyAvailabilityRepository(db, self.run_context)
        self.exception_repository = ExceptionRangeRepository(db, self.run_context)
        self.appointment_repository = AppointmentRepository(db, self.run_context)

    def compute_for_member(self, member_id: str, now: datetime) -> Optional[date]:
        weekly_rows = self.weekly_repository.get_for_member(member_id)
        if not weekly_rows:
            self.logger.info(f"No weekly availability for member {member_id}")
            return None

        weekly = [
            DaySchedule.from_record(row.day_of_week, row.is_open, row.slots) for row in weekly_rows
        ]
        exceptions = [
            BlackoutRange(row.start_at, row.end_at, bool(row.is_all_day))
            for row in self.exception_repository.get_ending_after(member_id, now)
        ]
        appointments = [
            BookedInterval(row.start_at, row.end_at)
            for row in self.appointment_repository.get_occupying_for_member(member_id, now)
        ]
        return compute_next_available(
            weekly,
            exceptions,
            appointments,
            now,
            horizon_days=self.horizon_days,
            tz=self.tz,
            cutoff_hour=settings.late_booking_cutoff_hour,
        )

    @BaseService.measure_operation("compute_for_provider")
    def compute_for_provider(self, provider_id: str, now: Optional[datetime] = None) -> Optional[date]:
        """
        Next bookable local date for a provider's schedule member.

        Returns None when the provider has no active member, no weekly schedule,
        or no qualifying day within the horizon.

        Raises:
            NotFoundException: If the provider does not exist
        """
        now = ensure_utc(now) if now else utc_now()
        if self.provider_repository.get_by_id(provider_id) is None:
            raise NotFoundException(f"Provider {provider_id} not found", code="PROVIDER_NOT_FOUND")

        member = self.member_repository.get_schedule_member(provider_id)
        if member is None:
            self.logger.info(f"No active member for provider {provider_id}")
            return None
        return self.compute_for_member(member.id, now)

    @BaseService.measure_operation("refresh_provider")
    def refresh_provider(self, provider_id: str, now: Optional[datetime] = None) -> SlotRefreshResult:
        """Recompute and store the provider's next available slot."""
        now = ensure_utc(now) if now else utc_now()
        provider = self.provider_repository.get_by_id(provider_id)
        if provider is None:
            raise NotFoundException(f"Provider {provider_id} not found", code="PROVIDER_NOT_FOUND")

        previous = (
            local_date(provider.next_available_slot, self.tz)
            if provider.next_available_slot is not None
            else None
        )
        new_slot = self.compute_for_provider(provider_id, now)
        slot_value = local_day_start_utc(new_slot, self.tz) if new_slot else None

        with self.transaction():
            self.provider_repository.update_next_slot(provider_id, slot_value, now)

        result = SlotRefreshResult(
            provider_id=provider_id,
            business_name=provider.business_name,
            previous_slot=previous,
            new_slot=new_slot,
        )
        self.logger.info(
            f"Next slot for {provider_id}: {result.new_slot or 'none'}"
            f"{' (changed)' if result.changed else ''}"
        )
        return result
