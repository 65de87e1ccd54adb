"""Schemas for administrator endpoints: users, groups, clients and their overrides."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field

from .account import GroupResponse, UserResponse
from .base import StrictModel, StrictRequestModel


class GroupPermissionOverrideIn(StrictRequestModel):
    group_id: int
    granted: bool
    override_priority: int = 0


class GroupRoleOverrideIn(StrictRequestModel):
    group_id: int
    role: str = Field(..., min_length=1, max_length=128)
    granted: bool
    override_priority: int = 0


class GroupPermissionOverridesUpdate(StrictRequestModel):
    overrides: List[GroupPermissionOverrideIn]


class GroupRoleOverridesUpdate(StrictRequestModel):
    overrides: List[GroupRoleOverrideIn]


class UserOverrideUpdate(StrictRequestModel):
    granted: bool


class GroupPermissionOverrideOut(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    group_id: int
    granted: bool
    override_priority: int


class UserPermissionOverrideOut(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    user_id: int
    granted: bool


class GroupRoleOverrideOut(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    group_id: int
    role: str
    granted: bool
    override_priority: int


class UserRoleOverrideOut(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    user_id: int
    role: str
    granted: bool


class ClientOverridesResponse(StrictModel):
    client_id: str
    is_managed: bool
    group_permissions: List[GroupPermissionOverrideOut]
    user_permissions: List[UserPermissionOverrideOut]
    group_roles: List[GroupRoleOverrideOut]
    user_roles: List[UserRoleOverrideOut]


class RegistrationLinkResponse(StrictModel):
    url: str
    expires_at: int


# Users


class UserCreate(StrictRequestModel):
    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    is_suspended: bool = False
    is_admin: bool = False


class UserUpdate(StrictRequestModel):
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    username: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_suspended: Optional[bool] = None
    is_admin: Optional[bool] = None


class AdminUserResponse(UserResponse):
    credential_uuid: str


class UserDetailResponse(StrictModel):
    user: AdminUserResponse
    groups: List[GroupResponse]


# Groups


class GroupCreate(StrictRequestModel):
    slug: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class GroupUpdate(StrictRequestModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class GroupMembersResponse(StrictModel):
    group: GroupResponse
    members: List[AdminUserResponse]


class GroupMembershipResponse(StrictModel):
    group: GroupResponse
    targeted_user: AdminUserResponse
    members: List[AdminUserResponse]


# Clients


class ClientCreate(StrictRequestModel):
    app_name: str = Field(..., min_length=1, max_length=255)
    app_description: Optional[str] = None
    redirect_uris: List[str] = Field(default_factory=list)
    is_disabled: bool = False
    default_allowed: bool = False
    allow_explicit_flow: bool = True
    allow_implicit_flow: bool = False


class ClientUpdate(StrictRequestModel):
    app_name: Optional[str] = Field(None, min_length=1, max_length=255)
    app_description: Optional[str] = None
    redirect_uris: Optional[List[str]] = None
    is_disabled: Optional[bool] = None
    default_allowed: Optional[bool] = None
    allow_explicit_flow: Optional[bool] = None
    allow_implicit_flow: Optional[bool] = None


class ClientResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    client_id: str
    app_name: str
    app_description: Optional[str] = None
    redirect_uris: List[str]
    is_managed: bool
    is_disabled: bool
    default_allowed: bool
    allow_explicit_flow: bool
    allow_implicit_flow: bool
    created_at: Optional[datetime] = None


class ClientSecretResponse(StrictModel):
    """Returned only when a secret is generated; it is not retrievable later."""

    client: ClientResponse
    client_secret: str


__all__ = [
    "AdminUserResponse",
    "ClientCreate",
    "ClientOverridesResponse",
    "ClientResponse",
    "ClientSecretResponse",
    "ClientUpdate",
    "GroupCreate",
    "GroupMembersResponse",
    "GroupMembershipResponse",
    "GroupUpdate",
    "GroupPermissionOverrideIn",
    "GroupPermissionOverrideOut",
    "GroupPermissionOverridesUpdate",
    "GroupRoleOverrideIn",
    "GroupRoleOverrideOut",
    "GroupRoleOverridesUpdate",
    "RegistrationLinkResponse",
    "UserCreate",
    "UserDetailResponse",
    "UserOverrideUpdate",
    "UserPermissionOverrideOut",
    "UserRoleOverrideOut",
    "UserUpdate",
]
