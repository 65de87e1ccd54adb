# backend/idbroker/repositories/override_repository.py
"""
Override Repository

Handles the four per-client override tables:
- GroupPermissionOverride / UserPermissionOverride (access decision)
- GroupRoleOverride / UserRoleOverride (role set)

Group overrides are replaced in bulk (delete-all-then-insert) inside a single
transaction, a repeated key keeping its last entry; user overrides are upserted
or deleted one row at a time.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.overrides import (
    GroupPermissionOverride,
    GroupRoleOverride,
    UserPermissionOverride,
    UserRoleOverride,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# (group_id, granted, override_priority)
GroupPermissionRow = Tuple[int, bool, int]
# (group_id, role, granted, override_priority)
GroupRoleRow = Tuple[int, str, bool, int]


class OverrideRepository(BaseRepository[GroupPermissionOverride]):
    """
    Repository for client override data access.

    Manages several related models, so the base class only supplies the
    session plumbing (transaction, upsert, logger).
    """

    def __init__(self, db: Session):
        super().__init__(db, GroupPermissionOverride)

    # Permission overrides

    def get_user_permission(self, user_id: int, client_id: str) -> Optional[UserPermissionOverride]:
        return self.db.get(
            UserPermissionOverride, (user_id, client_id), populate_existing=True
        )

    def list_group_permissions(self, client_id: str) -> List[GroupPermissionOverride]:
        return (
            self.db.query(GroupPermissionOverride)
            .filter(GroupPermissionOverride.client_id == client_id)
            .populate_existing()
            .all()
        )

    def list_user_permissions(self, client_id: str) -> List[UserPermissionOverride]:
        return (
            self.db.query(UserPermissionOverride)
            .filter(UserPermissionOverride.client_id == client_id)
            .populate_existing()
            .all()
        )

    def set_user_permission(self, user_id: int, client_id: str, granted: bool) -> None:
        self._upsert(
            UserPermissionOverride,
            {"user_id": user_id, "client_id": client_id, "granted": granted},
            ["user_id", "client_id"],
            {"granted": granted},
        )

    def delete_user_permission(self, user_id: int, client_id: str) -> bool:
        return self._delete_where(
            delete(UserPermissionOverride).where(
                UserPermissionOverride.user_id == user_id,
                UserPermissionOverride.client_id == client_id,
            )
        )

    def replace_group_permissions(
        self, client_id: str, rows: Iterable[GroupPermissionRow]
    ) -> None:
        """Atomically swap the full set of group permission overrides for a client."""
        with self.transaction():
            self.db.execute(
                delete(GroupPermissionOverride)
                .where(GroupPermissionOverride.client_id == client_id)
                .execution_options(synchronize_session="fetch")
            )
            for group_id, granted, priority in rows:
                self._upsert(
                    GroupPermissionOverride,
                    {
                        "group_id": group_id,
                        "client_id": client_id,
                        "granted": granted,
                        "override_priority": priority,
                    },
                    ["group_id", "client_id"],
                    {"granted": granted, "override_priority": priority},
                )

    # Role overrides

    def list_group_roles(self, client_id: str) -> List[GroupRoleOverride]:
        return (
            self.db.query(GroupRoleOverride)
            .filter(GroupRoleOverride.client_id == client_id)
            .populate_existing()
            .all()
        )

    def list_user_roles(self, user_id: int, client_id: str) -> List[UserRoleOverride]:
        return (
            self.db.query(UserRoleOverride)
            .filter(UserRoleOverride.user_id == user_id, UserRoleOverride.client_id == client_id)
            .populate_existing()
            .all()
        )

    def list_all_user_roles(self, client_id: str) -> List[UserRoleOverride]:
        return (
            self.db.query(UserRoleOverride)
            .filter(UserRoleOverride.client_id == client_id)
            .populate_existing()
            .all()
        )

    def set_user_role(self, user_id: int, client_id: str, role: str, granted: bool) -> None:
        self._upsert(
            UserRoleOverride,
            {"user_id": user_id, "client_id": client_id, "role": role, "granted": granted},
            ["user_id", "client_id", "role"],
            {"granted": granted},
        )

    def delete_user_role(self, user_id: int, client_id: str, role: str) -> bool:
        return self._delete_where(
            delete(UserRoleOverride).where(
                UserRoleOverride.user_id == user_id,
                UserRoleOverride.client_id == client_id,
                UserRoleOverride.role == role,
            )
        )

    def replace_group_roles(self, client_id: str, rows: Iterable[GroupRoleRow]) -> None:
        """Atomically swap the full set of group role overrides for a client."""
        with self.transaction():
            self.db.execute(
                delete(GroupRoleOverride)
                .where(GroupRoleOverride.client_id == client_id)
                .execution_options(synchronize_session="fetch")
            )
            for group_id, role, granted, priority in rows:
                self._upsert(
                    GroupRoleOverride,
                    {
                        "group_id": group_id,
                        "client_id": client_id,
                        "role": role,
                        "granted": granted,
                        "override_priority": priority,
                    },
                    ["group_id", "client_id", "role"],
                    {"granted": granted, "override_priority": priority},
                )

    def _delete_where(self, stmt) -> bool:
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session="fetch"))
            self.db.flush()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting override: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete override: {str(e)}")
