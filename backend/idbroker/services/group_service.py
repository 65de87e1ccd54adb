# backend/idbroker/services/group_service.py
"""
Administrator management of groups and their memberships.

Managed groups belong to the system: their definition and membership are
read-only here.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.exceptions import ApiError, ErrorKind
from ..models.user import Group, User
from ..repositories.user_repository import GroupRepository, UserRepository
from .base import BaseService

GROUP_FIELDS = frozenset({"slug", "name", "description"})


@dataclass(frozen=True)
class GroupMembers:
    group: Group
    members: List[User]


@dataclass(frozen=True)
class MembershipChange:
    group: Group
    targeted_user: User
    members: List[User]


class GroupService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = GroupRepository(db)
        self.user_repository = UserRepository(db)

    def _get_group(self, group_id: int) -> Group:
        group = self.repository.get_by_id(group_id)
        if group is None:
            raise ApiError(ErrorKind.UNKNOWN_GROUP)
        return group

    def _get_mutable_group(self, group_id: int) -> Group:
        group = self._get_group(group_id)
        if group.is_managed:
            raise ApiError(ErrorKind.MANAGED_OBJECT)
        return group

    def _get_user(self, user_id: int) -> User:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise ApiError(ErrorKind.UNKNOWN_USER)
        return user

    def list_groups(self) -> List[Group]:
        return self.repository.get_all()

    @BaseService.measure_operation("create_group")
    def create_group(self, fields: Dict[str, Any]) -> Group:
        """Raises ``group_slug_exists`` when the slug is taken."""
        values = {key: value for key, value in fields.items() if key in GROUP_FIELDS}
        with self.transaction():
            group = self.repository.create(**values)
        self.logger.info("Created group %s (%s)", group.id, group.slug)
        return group

    @BaseService.measure_operation("update_group")
    def update_group(self, group_id: int, changes: Dict[str, Any]) -> Group:
        group = self._get_mutable_group(group_id)
        values = {key: value for key, value in changes.items() if key in GROUP_FIELDS}
        with self.transaction():
            self.repository.update(group, **values)
        return group

    def list_members(self, group_id: int) -> GroupMembers:
        group = self._get_group(group_id)
        return GroupMembers(group=group, members=self.repository.get_members(group.id))

    @BaseService.measure_operation("add_group_member")
    def add_member(self, group_id: int, user_id: int) -> MembershipChange:
        """Idempotent: adding a current member succeeds without change."""
        group = self._get_mutable_group(group_id)
        user = self._get_user(user_id)
        with self.transaction():
            self.repository.add_member(group.id, user.id)
        self.logger.info("Added user %s to group %s", user.id, group.id)
        return MembershipChange(
            group=group, targeted_user=user, members=self.repository.get_members(group.id)
        )

    @BaseService.measure_operation("remove_group_member")
    def remove_member(self, group_id: int, user_id: int) -> MembershipChange:
        """Removing a user who is not a member is ``user_not_in_group``."""
        group = self._get_mutable_group(group_id)
        user = self._get_user(user_id)
        with self.transaction():
            removed = self.repository.remove_member(group.id, user.id)
        if not removed:
            raise ApiError(ErrorKind.USER_NOT_IN_GROUP)
        self.logger.info("Removed user %s from group %s", user.id, group.id)
        return MembershipChange(
            group=group, targeted_user=user, members=self.repository.get_members(group.id)
        )
