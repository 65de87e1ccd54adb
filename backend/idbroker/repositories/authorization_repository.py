# backend/idbroker/repositories/authorization_repository.py
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.authorization import UserAppAuthorization
from .base_repository import BaseRepository


class AuthorizationRepository(BaseRepository[UserAppAuthorization]):
    def __init__(self, db: Session):
        super().__init__(db, UserAppAuthorization)

    def get(self, user_id: int, client_id: str) -> Optional[UserAppAuthorization]:
        return (
            self._build_query()
            .filter(
                UserAppAuthorization.user_id == user_id,
                UserAppAuthorization.client_id == client_id,
            )
            .populate_existing()
            .first()
        )

    def list_for_user(self, user_id: int) -> List[UserAppAuthorization]:
        return (
            self._build_query()
            .filter(UserAppAuthorization.user_id == user_id)
            .order_by(UserAppAuthorization.last_used.desc())
            .all()
        )

    def upsert(self, user_id: int, client_id: str, candidate_sub: str) -> UserAppAuthorization:
        """
        Record an approval.

        On conflict the existing ``sub`` is kept; ``last_used`` is bumped and the
        revocation flag cleared.
        """
        now = datetime.now(timezone.utc)
        self._upsert(
            UserAppAuthorization,
            {
                "user_id": user_id,
                "client_id": client_id,
                "sub": candidate_sub,
                "last_used": now,
                "revoked": False,
            },
            ["user_id", "client_id"],
            {"last_used": now, "revoked": False},
        )
        authorization = self.get(user_id, client_id)
        if authorization is None:
            raise RepositoryException("Authorization row missing after upsert")
        return authorization

    def revoke(self, user_id: int, client_id: str) -> bool:
        try:
            result = self.db.execute(
                update(UserAppAuthorization)
                .where(
                    UserAppAuthorization.user_id == user_id,
                    UserAppAuthorization.client_id == client_id,
                )
                .values(revoked=True)
                .execution_options(synchronize_session="fetch")
            )
            self.db.flush()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error revoking authorization {user_id}/{client_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to revoke authorization: {str(e)}")
