"""Weekly schedule and exception data access."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..models.availability import ExceptionRange, WeeklyAvailability
from .base_repository import BaseRepository


class WeeklyAvailabilityRepository(BaseRepository[WeeklyAvailability]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, WeeklyAvailability, run_context)

    def get_for_member(self, member_id: str) -> List[WeeklyAvailability]:
        return self.find_by(member_id=member_id)


class ExceptionRangeRepository(BaseRepository[ExceptionRange]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, ExceptionRange, run_context)

    def get_ending_after(self, member_id: str, cutoff: datetime) -> List[ExceptionRange]:
        """Exceptions still relevant at ``cutoff`` (end_at >= cutoff)."""
        try:
            rows = (
                self.db.query(ExceptionRange)
                .filter(ExceptionRange.member_id == member_id, ExceptionRange.end_at >= cutoff)
                .all()
            )
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load exceptions: {str(e)}")
