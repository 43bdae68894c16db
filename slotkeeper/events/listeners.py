"""
SQLAlchemy session hooks that turn appointment writes into events.

Writes are captured at flush time (while attribute history still holds the
previous values) and published only after the transaction commits. A rollback
discards whatever was captured.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ..models.appointment import Appointment
from .appointment_events import AppointmentSnapshot, from_snapshots
from .publisher import AppointmentEventPublisher

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_appointment_events"

SNAPSHOT_FIELDS = tuple(AppointmentSnapshot.model_fields)


def _previous_values(appointment: Appointment) -> Dict[str, Any]:
    state = inspect(appointment)
    previous: Dict[str, Any] = {}
    for field in SNAPSHOT_FIELDS:
        history = state.attrs[field].history
        if history.deleted:
            previous[field] = history.deleted[0]
    return previous


def _before_snapshot(appointment: Appointment, after: AppointmentSnapshot) -> AppointmentSnapshot:
    previous = _previous_values(appointment)
    if not previous:
        return after
    data = after.model_dump()
    data.update(previous)
    return AppointmentSnapshot.model_validate(data)


def _pending(session: Session) -> List[Any]:
    return session.info.setdefault(_PENDING_KEY, [])


def _capture(session: Session, flush_context: Any) -> None:
    pending = _pending(session)
    for obj in session.new:
        if isinstance(obj, Appointment):
            pending.append(from_snapshots(None, AppointmentSnapshot.from_model(obj)))
    for obj in session.dirty:
        if isinstance(obj, Appointment) and session.is_modified(obj, include_collections=False):
            after = AppointmentSnapshot.from_model(obj)
            before = _before_snapshot(obj, after)
            # Ledger-only writes such as reminders_sent are not lifecycle events
            if before == after:
                continue
            pending.append(from_snapshots(before, after))
    for obj in session.deleted:
        if isinstance(obj, Appointment):
            pending.append(from_snapshots(AppointmentSnapshot.from_model(obj), None))


def _discard(session: Session, *args: Any) -> None:
    session.info.pop(_PENDING_KEY, None)


def install_appointment_listeners(
    target: Any, publisher: Optional[AppointmentEventPublisher] = None
) -> AppointmentEventPublisher:
    """
    Register the capture/publish hooks on a Session class or sessionmaker.

    Returns the publisher in use.
    """
    active_publisher = publisher or AppointmentEventPublisher()

    def _publish(session: Session) -> None:
        events = session.info.pop(_PENDING_KEY, [])
        for write_event in events:
            try:
                active_publisher.publish(write_event)
            except Exception as exc:
                logger.error(f"Failed to publish appointment event: {exc}", exc_info=True)

    event.listen(target, "after_flush", _capture)
    event.listen(target, "after_commit", _publish)
    event.listen(target, "after_rollback", _discard)
    return active_publisher
