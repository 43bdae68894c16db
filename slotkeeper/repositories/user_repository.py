"""User and push token data access."""

from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.run_context import RunContext
from ..models.user import PushToken, User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, User, run_context)


class PushTokenRepository(BaseRepository[PushToken]):
    def __init__(self, db: Session, run_context: Optional[RunContext] = None):
        super().__init__(db, PushToken, run_context)

    def get_tokens_for_user(self, user_id: str) -> List[str]:
        return [row.token for row in self.find_by(user_id=user_id)]

    def delete_tokens(self, user_id: str, tokens: Iterable[str]) -> int:
        """Remove the given tokens from a user's registry; returns rows deleted."""
        token_list = list(tokens)
        if not token_list:
            return 0
        try:
            deleted = (
                self.db.query(PushToken)
                .filter(PushToken.user_id == user_id, PushToken.token.in_(token_list))
                .delete(synchronize_session=False)
            )
            self.db.flush()
            self._track_delete(deleted)
            return deleted
        except SQLAlchemyError as e:
            self.logger.error(f"Error pruning push tokens for {user_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to prune push tokens: {str(e)}")
