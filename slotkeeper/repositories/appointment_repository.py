# slotkeeper/repositories/appointment_repository.py
"""
Appointment Repository

Queries used by the availability calculator, the reminder sweeper and the
daily agenda, plus the append-only update of reminders_sent.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import AppointmentStatus
from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..models.appointment import Appointment
from .base_repository import BaseRepository

OCCUPYING_STATUSES = [status.value for status in AppointmentStatus.occupying()]


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, Appointment, run_context)

    def get_occupying_for_member(self, member_id: str, since: datetime) -> List[Appointment]:
        """Pending and confirmed appointments of a member starting at or after ``since``."""
        try:
            rows = (
                self.db.query(Appointment)
                .filter(
                    Appointment.member_id == member_id,
                    Appointment.status.in_(OCCUPYING_STATUSES),
                    Appointment.start_at >= since,
                )
                .all()
            )
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load member appointments: {str(e)}")

    def get_confirmed_starting_between(
        self, start: datetime, end: datetime, provider_id: Optional[str] = None
    ) -> List[Appointment]:
        """Confirmed appointments with start <= start_at <= end, earliest first."""
        try:
            query = self.db.query(Appointment).filter(
                Appointment.status == AppointmentStatus.CONFIRMED.value,
                Appointment.start_at >= start,
                Appointment.start_at <= end,
            )
            if provider_id:
                query = query.filter(Appointment.provider_id == provider_id)
            rows = query.order_by(Appointment.start_at, Appointment.id).populate_existing().all()
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load upcoming appointments: {str(e)}")

    def get_occupying_for_provider_between(
        self, provider_id: str, start: datetime, end: datetime
    ) -> List[Appointment]:
        """Pending and confirmed appointments with start in [start, end)."""
        try:
            rows = (
                self.db.query(Appointment)
                .filter(
                    Appointment.provider_id == provider_id,
                    Appointment.status.in_(OCCUPYING_STATUSES),
                    Appointment.start_at >= start,
                    Appointment.start_at < end,
                )
                .order_by(Appointment.start_at, Appointment.id)
                .all()
            )
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load provider agenda: {str(e)}")

    def lock_for_reminder(self, appointment_id: str) -> Optional[Appointment]:
        """Reload an appointment under a row lock held until the caller commits."""
        try:
            appointment = (
                self.db.query(Appointment)
                .filter(Appointment.id == appointment_id)
                .with_for_update()
                .populate_existing()
                .one_or_none()
            )
            self._track_read()
            return appointment
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to lock appointment {appointment_id}: {str(e)}")

    def append_reminder_sent(self, appointment_id: str, stamp: str) -> Optional[Appointment]:
        """
        Append ``stamp`` to reminders_sent under a row lock.

        The list is reassigned rather than mutated so the JSON column is always
        flagged dirty.
        """
        try:
            appointment = (
                self.db.query(Appointment)
                .filter(Appointment.id == appointment_id)
                .with_for_update()
                .one_or_none()
            )
            self._track_read()
            if appointment is None:
                return None
            appointment.reminders_sent = [*(appointment.reminders_sent or []), stamp]
            self.db.flush()
            self._track_write()
            return appointment
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording reminder for {appointment_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to record reminder: {str(e)}")
