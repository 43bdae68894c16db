"""Publishes appointment write events to the task queue."""

import logging
from typing import Any, Callable, Dict, Optional, Sequence

from .appointment_events import AppointmentCreated, AppointmentDeleted, AppointmentUpdated

logger = logging.getLogger(__name__)

INVALIDATE_TASK = "availability.invalidate_on_write"
DISPATCH_TASK = "notifications.dispatch_booking_event"

Enqueue = Callable[[str, Dict[str, Any]], Any]


def _celery_enqueue(task_name: str, payload: Dict[str, Any]) -> Any:
    from ..tasks.celery_app import celery_app

    return celery_app.send_task(task_name, args=[payload])


class AppointmentEventPublisher:
    """
    Fans each appointment write out to the slot invalidator and the
    notification dispatcher.

    The two consumers are enqueued independently; failing to enqueue one does
    not prevent the other.
    """

    def __init__(
        self,
        enqueue: Optional[Enqueue] = None,
        task_names: Sequence[str] = (INVALIDATE_TASK, DISPATCH_TASK),
    ):
        self.enqueue = enqueue or _celery_enqueue
        self.task_names = tuple(task_names)

    def publish(self, event: AppointmentCreated | AppointmentUpdated | AppointmentDeleted) -> int:
        """Queue an event for every consumer; returns how many were enqueued."""
        payload = event.to_dict()
        enqueued = 0
        for task_name in self.task_names:
            try:
                self.enqueue(task_name, payload)
                enqueued += 1
            except Exception as exc:
                logger.error(
                    f"Failed to enqueue {task_name} for event {event.event_id}: {exc}",
                    exc_info=True,
                )
        logger.debug(f"Published {event.kind} event {event.event_id} to {enqueued} consumers")
        return enqueued
