"""
Push preference resolution.

Opt-out model: a missing preference record allows everything. A record can
switch off push entirely or a single event type. When the record cannot be
read the notification is sent anyway (FAIL_OPEN).
"""

from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import NotificationKind, PreferenceDecision, PreferenceOwner
from ..core.run_context import RunContext
from ..repositories.notification_preference_repository import NotificationPreferenceRepository
from .base import BaseService

# Event type -> preference column
PREFERENCE_FIELDS: Dict[NotificationKind, str] = {
    NotificationKind.NEW_BOOKING: "new_booking",
    NotificationKind.BOOKING_RECEIVED: "new_booking",
    NotificationKind.CONFIRMED: "confirmation",
    NotificationKind.CANCELLED_BY_CLIENT: "cancellation",
    NotificationKind.CANCELLED_BY_PROVIDER: "cancellation",
    NotificationKind.RESCHEDULED: "reschedule",
    NotificationKind.REMINDER: "reminder",
}


class PreferenceResolver(BaseService):
    def __init__(
        self,
        db: Session,
        run_context: Optional[RunContext] = None,
        repository: Optional[NotificationPreferenceRepository] = None,
    ):
        super().__init__(db, run_context)
        self.repository = repository or NotificationPreferenceRepository(db, self.run_context)

    def resolve(
        self, owner_type: PreferenceOwner, owner_id: str, kind: NotificationKind
    ) -> PreferenceDecision:
        try:
            preference = self.repository.get_for_owner(owner_type, owner_id)
        except Exception as exc:
            self.logger.error(
                f"Could not read {owner_type.value} preferences for {owner_id}, sending anyway: {exc}"
            )
            self.db.rollback()
            return PreferenceDecision.FAIL_OPEN

        if preference is None:
            return PreferenceDecision.ALLOW
        if not preference.push_enabled:
            return PreferenceDecision.DENY
        if getattr(preference, PREFERENCE_FIELDS[kind]) is False:
            return PreferenceDecision.DENY
        return PreferenceDecision.ALLOW
