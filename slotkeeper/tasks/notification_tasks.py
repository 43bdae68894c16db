# slotkeeper/tasks/notification_tasks.py
"""
Celery tasks for booking notifications: lifecycle dispatch, reminders and the
evening agenda summary.
"""

import logging
from typing import Any, Dict, Optional

from slotkeeper.core.run_context import RunContext
from slotkeeper.database import SessionLocal, session_scope
from slotkeeper.events.appointment_events import parse_event
from slotkeeper.services.agenda_summary import AgendaSummaryService
from slotkeeper.services.notification_service import NotificationService
from slotkeeper.services.reminder_sweeper import ReminderSweeper
from slotkeeper.tasks.celery_app import BaseTask, celery_app, task_result

logger = logging.getLogger(__name__)

# Replaced in tests with a factory bound to the test database
session_factory = SessionLocal


@celery_app.task(
    base=BaseTask,
    name="notifications.dispatch_booking_event",
    max_retries=0,
    queue="notifications",
)
def dispatch_booking_event(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Send the push and email notifications an appointment write calls for.

    Never retried: each delivery is claimed before sending, and a retry would
    only find the claims already taken.
    """
    event = parse_event(payload)
    run_context = RunContext(name="dispatch_booking_event")
    with session_scope(session_factory) as session:
        summary = NotificationService(session, run_context).dispatch(event)
    return task_result(summary)


@celery_app.task(
    base=BaseTask,
    name="notifications.send_booking_reminders",
    max_retries=0,
    queue="notifications",
)
def send_booking_reminders(provider_id: Optional[str] = None) -> Dict[str, Any]:
    run_context = RunContext(name="send_booking_reminders")
    with session_scope(session_factory) as session:
        summary = ReminderSweeper(session, session_factory, run_context).run(provider_id=provider_id)
    return task_result(summary)


@celery_app.task(
    base=BaseTask,
    name="notifications.send_daily_agenda_summary",
    max_retries=0,
    queue="notifications",
)
def send_daily_agenda_summary(provider_id: Optional[str] = None) -> Dict[str, Any]:
    run_context = RunContext(name="send_daily_agenda_summary")
    with session_scope(session_factory) as session:
        summary = AgendaSummaryService(session, session_factory, run_context).run(
            provider_id=provider_id
        )
    return task_result(summary)
