"""
Database models for the identity broker.

- Users, groups and group memberships
- Passkey credentials
- Login sessions
- Client applications and their per-user authorizations
- Permission and role overrides
"""

from .authorization import UserAppAuthorization
from .client import ClientApplication
from .credential import Credential
from .overrides import (
    GroupPermissionOverride,
    GroupRoleOverride,
    UserPermissionOverride,
    UserRoleOverride,
)
from .session import UserSession
from .user import Group, User, group_memberships

__all__ = [
    "ClientApplication",
    "Credential",
    "Group",
    "GroupPermissionOverride",
    "GroupRoleOverride",
    "User",
    "UserAppAuthorization",
    "UserPermissionOverride",
    "UserRoleOverride",
    "UserSession",
    "group_memberships",
]
