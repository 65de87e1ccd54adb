# backend/idbroker/services/policy_service.py
"""
Policy resolution for (user, client application) pairs.

Both resolutions are ordered reductions:

    access: default_allowed -> group overrides (ascending priority) -> user override
    roles:  {}              -> group overrides (ascending priority) -> user overrides

The fold functions below are pure and hold the precedence rules; the service
only loads rows and hands them over already sorted.
"""

from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional, Sequence, Set, TypeVar

from sqlalchemy.orm import Session

from ..models.client import ClientApplication
from ..models.overrides import GroupPermissionOverride, GroupRoleOverride
from ..models.user import Group
from ..repositories.override_repository import OverrideRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService

logger = logging.getLogger(__name__)

GroupRowT = TypeVar("GroupRowT", GroupPermissionOverride, GroupRoleOverride)


@dataclass(frozen=True)
class RoleToggle:
    role: str
    granted: bool


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    roles: List[str]
    groups: List[Group]


def order_group_overrides(rows: Iterable[GroupRowT], group_ids: Iterable[int]) -> List[GroupRowT]:
    """
    Keep rows for the user's groups, ascending by priority.

    Ties are broken by group id so the result never depends on row order.
    """
    members: Set[int] = set(group_ids)
    matching = [row for row in rows if row.group_id in members]
    return sorted(matching, key=lambda row: (row.override_priority, row.group_id))


def fold_access(
    default_allowed: bool, ordered_grants: Iterable[bool], user_grant: Optional[bool]
) -> bool:
    """A user override short-circuits; otherwise the last group grant wins."""
    if user_grant is not None:
        return user_grant
    decision = default_allowed
    for granted in ordered_grants:
        decision = granted
    return decision


def fold_roles(
    ordered_group_toggles: Iterable[RoleToggle], user_toggles: Iterable[RoleToggle]
) -> List[str]:
    """Apply add/remove toggles in order; user toggles form the final layer."""
    roles: List[str] = []
    for layer in (ordered_group_toggles, user_toggles):
        for toggle in layer:
            if toggle.granted:
                if toggle.role not in roles:
                    roles.append(toggle.role)
            elif toggle.role in roles:
                roles.remove(toggle.role)
    return roles


class PolicyService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.override_repository = OverrideRepository(db)
        self.user_repository = UserRepository(db)

    def check_access(
        self,
        user_id: int,
        client: ClientApplication,
        group_ids: Optional[Sequence[int]] = None,
    ) -> bool:
        user_override = self.override_repository.get_user_permission(user_id, client.client_id)
        if user_override is not None:
            return fold_access(client.default_allowed, (), user_override.granted)

        if group_ids is None:
            group_ids = self.user_repository.get_group_ids(user_id)
        ordered = order_group_overrides(
            self.override_repository.list_group_permissions(client.client_id), group_ids
        )
        return fold_access(client.default_allowed, (row.granted for row in ordered), None)

    def resolve_roles(
        self,
        user_id: int,
        client_id: str,
        group_ids: Optional[Sequence[int]] = None,
    ) -> List[str]:
        if group_ids is None:
            group_ids = self.user_repository.get_group_ids(user_id)
        ordered = order_group_overrides(self.override_repository.list_group_roles(client_id), group_ids)
        user_rows = self.override_repository.list_user_roles(user_id, client_id)
        return fold_roles(
            (RoleToggle(row.role, row.granted) for row in ordered),
            (RoleToggle(row.role, row.granted) for row in user_rows),
        )

    @BaseService.measure_operation("evaluate_policy")
    def evaluate(self, user_id: int, client: ClientApplication) -> PolicyDecision:
        """Access decision, role set and groups for one user on one client."""
        groups = self.user_repository.get_groups(user_id)
        group_ids = [group.id for group in groups]
        allowed = self.check_access(user_id, client, group_ids)
        roles = self.resolve_roles(user_id, client.client_id, group_ids) if allowed else []
        return PolicyDecision(allowed=allowed, roles=roles, groups=groups)
