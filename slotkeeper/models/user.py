"""User and push token models."""

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import TimestampMixin


class User(Base, TimestampMixin):
    """An account that can own a provider or book as a client."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=True)

    push_tokens = relationship(
        "PushToken", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User {self.id}>"


class PushToken(Base, TimestampMixin):
    """Device push token registered by the mobile app."""

    __tablename__ = "push_tokens"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(255), nullable=False)

    user = relationship("User", back_populates="push_tokens")

    __table_args__ = (UniqueConstraint("user_id", "token", name="uq_push_tokens_user_token"),)
