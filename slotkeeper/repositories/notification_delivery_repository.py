# slotkeeper/repositories/notification_delivery_repository.py
"""
Repository for lifecycle notification delivery tracking.

A delivery is claimed before it is sent; a second claim under the same
idempotency key loses, so redelivered events do not notify twice.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import ulid

from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..core.timezone_utils import utc_now
from ..models.notification import NotificationDelivery
from .base_repository import BaseRepository


class NotificationDeliveryRepository(BaseRepository[NotificationDelivery]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, NotificationDelivery, run_context)

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[NotificationDelivery]:
        rows = self.find_by(idempotency_key=idempotency_key)
        return rows[0] if rows else None

    def claim(self, idempotency_key: str, event_type: str) -> bool:
        """
        Insert the delivery row if absent.

        Returns True when this call created the row, False when it already existed.
        """
        values = {
            "id": str(ulid.ULID()),
            "idempotency_key": idempotency_key,
            "event_type": event_type,
            "created_at": utc_now(),
        }
        dialect = self.dialect_name
        try:
            if dialect in ("postgresql", "sqlite"):
                insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
                stmt = (
                    insert_fn(NotificationDelivery)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["idempotency_key"])
                )
                result = self.db.execute(stmt)
                claimed = bool(result.rowcount)
            else:
                if self.get_by_idempotency_key(idempotency_key) is not None:
                    return False
                self.db.add(NotificationDelivery(**values))
                self.db.flush()
                claimed = True
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming delivery {idempotency_key}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to claim delivery: {str(e)}")
        if claimed:
            self._track_write()
        return claimed
