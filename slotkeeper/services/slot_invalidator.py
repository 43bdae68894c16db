"""
Write-triggered invalidation of the cached next available slot.

Best-effort: failures are logged and dropped. The staleness sweeper repairs
anything this path misses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
import logging
from typing import Optional, Union

from ..core.run_context import RunContext
from ..database import SessionFactory, session_scope
from ..events.appointment_events import (
    AppointmentCreated,
    AppointmentDeleted,
    AppointmentUpdated,
)
from .next_slot_service import NextSlotService

logger = logging.getLogger(__name__)

AppointmentEvent = Union[AppointmentCreated, AppointmentUpdated, AppointmentDeleted]


class InvalidationOutcome(str, Enum):
    SKIPPED = "skipped"
    RECOMPUTED = "recomputed"
    FAILED = "failed"


def needs_recompute(event: AppointmentEvent) -> bool:
    """Creates and deletes always recompute; updates only on status or start change."""
    if isinstance(event, AppointmentUpdated):
        return event.status_changed or event.start_changed
    return True


class SlotInvalidator:
    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        run_context: Optional[RunContext] = None,
    ):
        self.session_factory = session_factory
        self.run_context = run_context or RunContext(name="slot_invalidation")

    def handle(self, event: AppointmentEvent, now: Optional[datetime] = None) -> InvalidationOutcome:
        if not needs_recompute(event):
            logger.debug(
                f"Appointment {event.appointment_id} update without status/start change; skipping"
            )
            return InvalidationOutcome.SKIPPED

        provider_id = event.provider_id
        try:
            with session_scope(self.session_factory) as session:
                NextSlotService(session, self.run_context).refresh_provider(provider_id, now)
        except Exception as exc:
            logger.error(
                f"Failed to refresh next slot for provider {provider_id} "
                f"after {event.kind} event {event.event_id}: {exc}",
                exc_info=True,
            )
            return InvalidationOutcome.FAILED
        return InvalidationOutcome.RECOMPUTED
