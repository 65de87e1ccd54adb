# backend/idbroker/repositories/session_repository.py
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.session import UserSession
from .base_repository import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    """
    Login sessions.

    Rotation is a compare-and-swap on the stored hash and deletion a single
    DELETE, so of two concurrent refreshes with the same secret only one wins.
    """

    def __init__(self, db: Session):
        super().__init__(db, UserSession)

    def replace_refresh_hash(self, session_id: int, expected_hash: str, refresh_hash: str) -> bool:
        """
        Swap the stored hash only if it still equals ``expected_hash``.

        Returns False when the session is gone or another refresh already rotated it.
        """
        try:
            result = self.db.execute(
                update(UserSession)
                .where(
                    UserSession.session_id == session_id,
                    UserSession.refresh_hash == expected_hash,
                )
                .values(refresh_hash=refresh_hash)
                .execution_options(synchronize_session="fetch")
            )
            self.db.flush()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error rotating session {session_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to rotate session: {str(e)}")

    def delete_session(self, session_id: int) -> bool:
        try:
            result = self.db.execute(
                delete(UserSession)
                .where(UserSession.session_id == session_id)
                .execution_options(synchronize_session="fetch")
            )
            self.db.flush()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting session {session_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete session: {str(e)}")
