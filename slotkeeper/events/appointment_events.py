"""
Appointment write events.

A write is one of three variants: Created (after only), Updated (before and
after) and Deleted (before only). Each carries an ``event_id`` that identifies
the write across redeliveries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
import ulid

from ..core.enums import AppointmentStatus
from ..core.timezone_utils import ensure_utc


def _new_event_id() -> str:
    return str(ulid.ULID())


class AppointmentSnapshot(BaseModel):
    """State of an appointment at one side of a write."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider_id: str
    member_id: Optional[str] = None
    client_id: Optional[str] = None
    service_name: str = ""
    status: AppointmentStatus
    start_at: datetime
    end_at: Optional[datetime] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    location: Optional[str] = None
    cancelled_by: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def is_occupying(self) -> bool:
        return self.status in AppointmentStatus.occupying()

    @classmethod
    def from_model(cls, appointment: Any) -> "AppointmentSnapshot":
        return cls(
            id=appointment.id,
            provider_id=appointment.provider_id,
            member_id=appointment.member_id,
            client_id=appointment.client_id,
            service_name=appointment.service_name or "",
            status=AppointmentStatus(appointment.status),
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            client_name=appointment.client_name,
            client_email=appointment.client_email,
            client_phone=appointment.client_phone,
            location=appointment.location,
            cancelled_by=appointment.cancelled_by,
        )


class _AppointmentEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=_new_event_id)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class AppointmentCreated(_AppointmentEvent):
    """Fired after an appointment is inserted."""

    kind: Literal["created"] = "created"
    after: AppointmentSnapshot

    @property
    def provider_id(self) -> str:
        return self.after.provider_id

    @property
    def appointment_id(self) -> str:
        return self.after.id


class AppointmentUpdated(_AppointmentEvent):
    """Fired after an appointment row changes."""

    kind: Literal["updated"] = "updated"
    before: AppointmentSnapshot
    after: AppointmentSnapshot

    @property
    def provider_id(self) -> str:
        return self.after.provider_id

    @property
    def appointment_id(self) -> str:
        return self.after.id

    @property
    def status_changed(self) -> bool:
        return self.before.status != self.after.status

    @property
    def start_changed(self) -> bool:
        return self.before.start_at != self.after.start_at


class AppointmentDeleted(_AppointmentEvent):
    """Fired after an appointment is deleted."""

    kind: Literal["deleted"] = "deleted"
    before: AppointmentSnapshot

    @property
    def provider_id(self) -> str:
        return self.before.provider_id

    @property
    def appointment_id(self) -> str:
        return self.before.id


AppointmentWriteEvent = Annotated[
    Union[AppointmentCreated, AppointmentUpdated, AppointmentDeleted],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter = TypeAdapter(AppointmentWriteEvent)


def from_snapshots(
    before: Optional[AppointmentSnapshot],
    after: Optional[AppointmentSnapshot],
    event_id: Optional[str] = None,
) -> Union[AppointmentCreated, AppointmentUpdated, AppointmentDeleted]:
    """Build the matching variant from the two sides of a write."""
    extra = {"event_id": event_id} if event_id else {}
    if before is None and after is not None:
        return AppointmentCreated(after=after, **extra)
    if before is not None and after is not None:
        return AppointmentUpdated(before=before, after=after, **extra)
    if before is not None:
        return AppointmentDeleted(before=before, **extra)
    raise ValueError("An appointment write needs at least one snapshot")


def parse_event(
    payload: Dict[str, Any],
) -> Union[AppointmentCreated, AppointmentUpdated, AppointmentDeleted]:
    """Rebuild an event from its JSON task payload."""
    return _event_adapter.validate_python(payload)
