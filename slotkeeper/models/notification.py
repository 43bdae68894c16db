"""
Notification models.

Includes per-owner push preferences and the delivery ledger used to keep
lifecycle notifications idempotent.
"""

from sqlalchemy import Boolean, Column, String, UniqueConstraint
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import TimestampMixin, UTCDateTime


class NotificationPreference(Base, TimestampMixin):
    """
    Push preferences of a provider or a client user.

    Per-event toggles are nullable: None means "not set" and counts as enabled.
    """

    __tablename__ = "notification_preferences"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_type = Column(String(20), nullable=False)
    owner_id = Column(String(26), nullable=False)
    push_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    new_booking = Column(Boolean, nullable=True)
    confirmation = Column(Boolean, nullable=True)
    cancellation = Column(Boolean, nullable=True)
    reschedule = Column(Boolean, nullable=True)
    reminder = Column(Boolean, nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", name="uq_notification_preferences_owner"),
    )


class NotificationDelivery(Base):
    """Record of a claimed lifecycle delivery, keyed for idempotency."""

    __tablename__ = "notification_deliveries"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    idempotency_key = Column(String(255), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
