# backend/idbroker/services/override_service.py
"""
Admin management of per-client overrides.

Group overrides are replaced as a whole set for one client; user overrides are
set or removed one at a time. Managed clients belong to the system and reject
every mutation.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import ApiError, ErrorKind
from ..models.client import ClientApplication
from ..models.overrides import (
    GroupPermissionOverride,
    GroupRoleOverride,
    UserPermissionOverride,
    UserRoleOverride,
)
from ..repositories.client_repository import ClientRepository
from ..repositories.override_repository import (
    GroupPermissionRow,
    GroupRoleRow,
    OverrideRepository,
)
from ..repositories.user_repository import GroupRepository, UserRepository
from .base import BaseService


@dataclass(frozen=True)
class ClientOverrides:
    client: ClientApplication
    group_permissions: List[GroupPermissionOverride]
    user_permissions: List[UserPermissionOverride]
    group_roles: List[GroupRoleOverride]
    user_roles: List[UserRoleOverride]


class OverrideService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = OverrideRepository(db)
        self.client_repository = ClientRepository(db)
        self.user_repository = UserRepository(db)
        self.group_repository = GroupRepository(db)

    def _get_client(self, client_id: str) -> ClientApplication:
        client = self.client_repository.get_by_id(client_id)
        if client is None:
            raise ApiError(ErrorKind.UNKNOWN_CLIENT)
        return client

    def _get_mutable_client(self, client_id: str) -> ClientApplication:
        client = self._get_client(client_id)
        if client.is_managed:
            raise ApiError(ErrorKind.MANAGED_OBJECT)
        return client

    def _require_user(self, user_id: int) -> None:
        if self.user_repository.get_by_id(user_id) is None:
            raise ApiError(ErrorKind.UNKNOWN_USER)

    def _require_groups(self, group_ids: Iterable[int]) -> None:
        for group_id in set(group_ids):
            if self.group_repository.get_by_id(group_id) is None:
                raise ApiError(ErrorKind.UNKNOWN_GROUP)

    def get_overrides(self, client_id: str) -> ClientOverrides:
        client = self._get_client(client_id)
        return ClientOverrides(
            client=client,
            group_permissions=self.repository.list_group_permissions(client_id),
            user_permissions=self.repository.list_user_permissions(client_id),
            group_roles=self.repository.list_group_roles(client_id),
            user_roles=self.repository.list_all_user_roles(client_id),
        )

    @BaseService.measure_operation("replace_group_permissions")
    def replace_group_permissions(
        self, client_id: str, rows: Sequence[GroupPermissionRow]
    ) -> List[GroupPermissionOverride]:
        self._get_mutable_client(client_id)
        self._require_groups(group_id for group_id, _, _ in rows)
        with self.transaction():
            self.repository.replace_group_permissions(client_id, rows)
        self.logger.info("Replaced %d group permission overrides on %s", len(rows), client_id)
        return self.repository.list_group_permissions(client_id)

    @BaseService.measure_operation("replace_group_roles")
    def replace_group_roles(
        self, client_id: str, rows: Sequence[GroupRoleRow]
    ) -> List[GroupRoleOverride]:
        self._get_mutable_client(client_id)
        self._require_groups(group_id for group_id, _, _, _ in rows)
        with self.transaction():
            self.repository.replace_group_roles(client_id, rows)
        self.logger.info("Replaced %d group role overrides on %s", len(rows), client_id)
        return self.repository.list_group_roles(client_id)

    def set_user_permission(self, client_id: str, user_id: int, granted: bool) -> None:
        self._get_mutable_client(client_id)
        self._require_user(user_id)
        with self.transaction():
            self.repository.set_user_permission(user_id, client_id, granted)

    def delete_user_permission(self, client_id: str, user_id: int) -> bool:
        self._get_mutable_client(client_id)
        with self.transaction():
            return self.repository.delete_user_permission(user_id, client_id)

    def set_user_role(self, client_id: str, user_id: int, role: str, granted: bool) -> None:
        self._get_mutable_client(client_id)
        self._require_user(user_id)
        with self.transaction():
            self.repository.set_user_role(user_id, client_id, role, granted)

    def delete_user_role(self, client_id: str, user_id: int, role: str) -> bool:
        self._get_mutable_client(client_id)
        with self.transaction():
            return self.repository.delete_user_role(user_id, client_id, role)
