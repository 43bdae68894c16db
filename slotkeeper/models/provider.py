"""Provider and member models."""

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import TimestampMixin, UTCDateTime


class Provider(Base, TimestampMixin):
    """
    A bookable business.

    next_available_slot is a memoized view of the availability calculator: the
    UTC instant of local midnight of the earliest bookable day, or None when
    nothing is bookable within the horizon.
    """

    __tablename__ = "providers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    business_name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, unique=True)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    next_available_slot = Column(UTCDateTime(), nullable=True, index=True)
    next_available_slot_updated_at = Column(UTCDateTime(), nullable=True)

    owner = relationship("User", foreign_keys=[owner_user_id], lazy="joined")
    members = relationship(
        "Member",
        back_populates="provider",
        cascade="all, delete-orphan",
        order_by="Member.created_at",
    )

    def __repr__(self) -> str:
        return f"<Provider {self.id} {self.business_name!r}>"


class Member(Base, TimestampMixin):
    """A staff resource that owns a weekly schedule."""

    __tablename__ = "members"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(
        String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)

    provider = relationship("Provider", back_populates="members")
