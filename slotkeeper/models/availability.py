"""Weekly schedule and exception models."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.types import JSON
import ulid

from ..database import Base
from .types import TimestampMixin, UTCDateTime


class WeeklyAvailability(Base, TimestampMixin):
    """
    Open windows of one member for one weekday.

    day_of_week uses 0 = Sunday ... 6 = Saturday. slots is a list of
    {"start": "HH:MM", "end": "HH:MM"} in business-local wall time.
    """

    __tablename__ = "weekly_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id = Column(
        String(26), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(Integer, nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
    slots = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("member_id", "day_of_week", name="uq_weekly_availability_member_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_weekly_availability_day"),
    )


class ExceptionRange(Base, TimestampMixin):
    """A blackout period for a member. Only all-day ranges close whole days."""

    __tablename__ = "exception_ranges"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id = Column(
        String(26), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False, index=True)
    is_all_day = Column(Boolean, nullable=False, default=True)
    reason = Column(String(255), nullable=True)
