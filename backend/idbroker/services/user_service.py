# backend/idbroker/services/user_service.py
"""
Administrator management of user accounts.

Accounts are created here (or by the setup command) without credentials; the
user enrolls a passkey through a registration link. Suspension takes effect on
the next request or refresh, since both re-read the user.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.exceptions import ApiError, ErrorKind
from ..models.user import Group, User
from ..repositories.user_repository import UserRepository
from .base import BaseService

USER_FIELDS = frozenset({"email", "username", "name", "is_suspended", "is_admin"})


@dataclass(frozen=True)
class UserDetail:
    user: User
    groups: List[Group]


class UserService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = UserRepository(db)

    def _get_user(self, user_id: int) -> User:
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise ApiError(ErrorKind.UNKNOWN_USER)
        return user

    def list_users(self) -> List[User]:
        return self.repository.get_all()

    def get_user(self, user_id: int) -> UserDetail:
        user = self._get_user(user_id)
        return UserDetail(user=user, groups=self.repository.get_groups(user.id))

    @BaseService.measure_operation("create_user")
    def create_user(self, fields: Dict[str, Any]) -> User:
        """Raises ``username_exists`` / ``email_exists`` on collisions."""
        values = {key: value for key, value in fields.items() if key in USER_FIELDS}
        with self.transaction():
            user = self.repository.create(**values)
        self.logger.info("Created user %s (%s)", user.id, user.username)
        return user

    @BaseService.measure_operation("update_user")
    def update_user(self, user_id: int, changes: Dict[str, Any]) -> User:
        user = self._get_user(user_id)
        values = {key: value for key, value in changes.items() if key in USER_FIELDS}
        with self.transaction():
            self.repository.update(user, **values)
        if values.get("is_suspended"):
            self.logger.info("Suspended user %s", user.id)
        return user
