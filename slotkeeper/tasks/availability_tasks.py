# slotkeeper/tasks/availability_tasks.py
"""
Celery tasks that keep each provider's cached next available slot fresh.
"""

import logging
from typing import Any, Dict

from slotkeeper.core.run_context import RunContext
from slotkeeper.database import SessionLocal, session_scope
from slotkeeper.events.appointment_events import parse_event
from slotkeeper.services.next_slot_service import NextSlotService
from slotkeeper.services.slot_invalidator import SlotInvalidator
from slotkeeper.services.slot_sweeper import SlotSweeper
from slotkeeper.tasks.celery_app import BaseTask, celery_app, task_result

logger = logging.getLogger(__name__)

# Replaced in tests with a factory bound to the test database
session_factory = SessionLocal


@celery_app.task(
    base=BaseTask,
    name="availability.recalculate_expired_slots",
    max_retries=0,
    queue="availability",
)
def recalculate_expired_slots(force: bool = False) -> Dict[str, Any]:
    """Recompute every published provider whose cached slot is missing or in the past."""
    run_context = RunContext(name="recalculate_expired_slots")
    with session_scope(session_factory) as session:
        summary = SlotSweeper(session, session_factory, run_context).run(force=force)
    logger.info(
        "Slot sweep finished: %s updated, %s unchanged, %s errors",
        summary.updated,
        summary.unchanged,
        summary.errors,
    )
    return task_result(summary)


@celery_app.task(
    base=BaseTask,
    name="availability.invalidate_on_write",
    max_retries=0,
    queue="availability",
)
def invalidate_on_write(payload: Dict[str, Any]) -> str:
    """Recompute the provider's slot after an appointment write, when it matters."""
    event = parse_event(payload)
    outcome = SlotInvalidator(session_factory, RunContext(name="invalidate_on_write")).handle(event)
    return outcome.value


@celery_app.task(
    base=BaseTask,
    name="availability.recalculate_provider_slot",
    max_retries=0,
    queue="availability",
)
def recalculate_provider_slot(provider_id: str) -> Dict[str, Any]:
    """Recompute one provider's slot on demand."""
    with session_scope(session_factory) as session:
        result = NextSlotService(session, RunContext(name="recalculate_provider_slot")).refresh_provider(
            provider_id
        )
    return task_result(result)
