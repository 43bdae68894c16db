"""Appointment model."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.types import JSON
import ulid

from ..core.enums import AppointmentStatus
from ..database import Base
from .types import TimestampMixin, UTCDateTime


class Appointment(Base, TimestampMixin):
    """
    A booking of a member's time.

    reminders_sent is append-only: ISO timestamps of reminder passes that
    already handled this appointment.
    """

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(
        String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id = Column(String(26), ForeignKey("members.id"), nullable=False, index=True)
    client_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    service_name = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)
    client_name = Column(String(255), nullable=True)
    client_email = Column(String(255), nullable=True)
    client_phone = Column(String(50), nullable=True)
    location = Column(String(500), nullable=True)
    cancelled_by = Column(String(20), nullable=True)
    reminders_sent = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    __table_args__ = (
        Index("ix_appointments_status_start", "status", "start_at"),
        Index("ix_appointments_member_start", "member_id", "start_at"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_appointments_status",
        ),
        CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('client', 'provider')",
            name="ck_appointments_cancelled_by",
        ),
    )

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)
