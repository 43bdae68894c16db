"""Notification preference data access."""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import PreferenceOwner
from ..core.run_context import RunContext
from ..models.notification import NotificationPreference
from .base_repository import BaseRepository


class NotificationPreferenceRepository(BaseRepository[NotificationPreference]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, NotificationPreference, run_context)

    def get_for_owner(
        self, owner_type: PreferenceOwner, owner_id: str
    ) -> Optional[NotificationPreference]:
        rows = self.find_by(owner_type=owner_type.value, owner_id=owner_id)
        return rows[0] if rows else None
