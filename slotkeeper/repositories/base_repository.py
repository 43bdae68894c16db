# slotkeeper/repositories/base_repository.py
"""
Base Repository Pattern

Provides common data access operations shared by the aggregate repositories.
Transactions are managed by services; repositories only flush. Every read,
write and delete is reported to the optional RunContext under the model's
table name.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..database.session_utils import get_dialect_name

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
        run_context: Optional per-run operation tracker
    """

    def __init__(self, db: Session, model: Type[T], run_context: Optional[RunContext] = None):
        self.db = db
        self.model = model
        self.run_context = run_context
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def collection(self) -> str:
        return self.model.__tablename__

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def _track_read(self, count: int = 1) -> None:
        if self.run_context is not None:
            self.run_context.track_read(self.collection, count)

    def _track_write(self, count: int = 1) -> None:
        if self.run_context is not None:
            self.run_context.track_write(self.collection, count)

    def _track_delete(self, count: int = 1) -> None:
        if self.run_context is not None:
            self.run_context.track_delete(self.collection, count)

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            entity = self.db.get(self.model, id)
            self._track_read()
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            self._track_write()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Update only the provided fields of an entity."""
        try:
            entity = self.db.get(self.model, id)
            if entity is None:
                return None
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            self._track_write()
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__} {id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")

    def find_by(self, **kwargs: Any) -> List[T]:
        try:
            rows = self.db.query(self.model).filter_by(**kwargs).all()
            self._track_read(len(rows))
            return rows
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find records: {str(e)}")

    def count(self, **kwargs: Any) -> int:
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting records: {str(e)}")
            raise RepositoryException(f"Failed to count records: {str(e)}")
