# backend/idbroker/repositories/user_repository.py
"""
User and group data access.

The ceremony controller resolves users by their credential correlation id, the
authorization flow by numeric id; both need the user's current group ids.
"""

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import Group, User, group_memberships
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_by_username(self, username: str) -> Optional[User]:
        return self.find_one_by(username=username)

    def get_by_credential_uuid(self, credential_uuid: str) -> Optional[User]:
        return self.find_one_by(credential_uuid=credential_uuid)

    def get_groups(self, user_id: int) -> List[Group]:
        try:
            stmt = (
                select(Group)
                .join(group_memberships, group_memberships.c.group_id == Group.id)
                .where(group_memberships.c.user_id == user_id)
                .order_by(Group.id)
            )
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading groups for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load groups: {str(e)}")

    def get_group_ids(self, user_id: int) -> List[int]:
        try:
            stmt = select(group_memberships.c.group_id).where(
                group_memberships.c.user_id == user_id
            )
            return [row[0] for row in self.db.execute(stmt).all()]
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading group ids for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load group ids: {str(e)}")


class GroupRepository(BaseRepository[Group]):
    def __init__(self, db: Session):
        super().__init__(db, Group)

    def get_members(self, group_id: int) -> List[User]:
        try:
            stmt = (
                select(User)
                .join(group_memberships, group_memberships.c.user_id == User.id)
                .where(group_memberships.c.group_id == group_id)
                .order_by(User.id)
            )
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading members of group {group_id}: {str(e)}")
            raise RepositoryException(f"Failed to load group members: {str(e)}")

    def add_member(self, group_id: int, user_id: int) -> None:
        """Add a membership; adding an existing member changes nothing."""
        self._upsert(
            group_memberships,
            {"group_id": group_id, "user_id": user_id},
            ["group_id", "user_id"],
            None,
        )

    def remove_member(self, group_id: int, user_id: int) -> bool:
        try:
            result = self.db.execute(
                delete(group_memberships).where(
                    group_memberships.c.group_id == group_id,
                    group_memberships.c.user_id == user_id,
                )
            )
            self.db.flush()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing user {user_id} from group {group_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to remove group member: {str(e)}")
