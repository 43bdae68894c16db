"""Provider and member data access."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..models.provider import Member, Provider
from .base_repository import BaseRepository


class ProviderRepository(BaseRepository[Provider]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, Provider, run_context)

    def _published(self):
        return self.db.query(Provider).filter(Provider.is_published.is_(True))

    def get_published(self) -> List[Provider]:
        try:
            rows = self._published().order_by(Provider.id).all()
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading published providers: {str(e)}")
            raise RepositoryException(f"Failed to load published providers: {str(e)}")

    def count_published(self) -> int:
        try:
            return self._published().count()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to count published providers: {str(e)}")

    def get_published_without_slot(self) -> List[Provider]:
        """Published providers whose cached slot was never computed or is empty."""
        try:
            rows = self._published().filter(Provider.next_available_slot.is_(None)).all()
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load providers without slot: {str(e)}")

    def get_published_with_slot_before(self, cutoff: datetime) -> List[Provider]:
        """Published providers whose cached slot is strictly before ``cutoff``."""
        try:
            rows = self._published().filter(Provider.next_available_slot < cutoff).all()
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load providers with expired slot: {str(e)}")

    def update_next_slot(
        self, provider_id: str, slot: Optional[datetime], computed_at: datetime
    ) -> Optional[Provider]:
        return self.update(
            provider_id,
            next_available_slot=slot,
            next_available_slot_updated_at=computed_at,
        )


class MemberRepository(BaseRepository[Member]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, Member, run_context)

    def get_active_members(self, provider_id: str) -> List[Member]:
        try:
            rows = (
                self.db.query(Member)
                .filter(Member.provider_id == provider_id, Member.is_active.is_(True))
                .order_by(Member.created_at, Member.id)
                .all()
            )
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load members: {str(e)}")

    def get_schedule_member(self, provider_id: str) -> Optional[Member]:
        """Default active member, else the first active member, else None."""
        members = self.get_active_members(provider_id)
        for member in members:
            if member.is_default:
                return member
        return members[0] if members else None
