# backend/idbroker/routes/v1/groups.py
"""
Group administration routes - API v1 (admin only)

Endpoints:
    GET /                                   → List groups
    POST /                                  → Create a group (201)
    PATCH /{group_id}                       → Update slug, name or description
    GET /{group_id}/members                 → Group and its members
    PUT /{group_id}/members/{user_id}       → Add a member (idempotent)
    DELETE /{group_id}/members/{user_id}    → Remove a member
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ...api.dependencies.auth import get_admin_user
from ...api.dependencies.services import get_group_service
from ...models.user import User
from ...schemas.account import GroupResponse
from ...schemas.admin import (
    AdminUserResponse,
    GroupCreate,
    GroupMembersResponse,
    GroupMembershipResponse,
    GroupUpdate,
)
from ...schemas.base import DataResponse
from ...services.group_service import GroupService, MembershipChange

logger = logging.getLogger(__name__)

router = APIRouter(tags=["groups-v1"])


def _membership_response(change: MembershipChange) -> DataResponse[GroupMembershipResponse]:
    return DataResponse(
        data=GroupMembershipResponse(
            group=GroupResponse.model_validate(change.group),
            targeted_user=AdminUserResponse.model_validate(change.targeted_user),
            members=[AdminUserResponse.model_validate(member) for member in change.members],
        )
    )


@router.get("", response_model=DataResponse[List[GroupResponse]])
async def list_groups(
    _admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[List[GroupResponse]]:
    groups = await asyncio.to_thread(group_service.list_groups)
    return DataResponse(data=[GroupResponse.model_validate(group) for group in groups])


@router.post(
    "",
    response_model=DataResponse[GroupResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    payload: GroupCreate,
    _admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[GroupResponse]:
    group = await asyncio.to_thread(group_service.create_group, payload.model_dump())
    return DataResponse(data=GroupResponse.model_validate(group))


@router.patch("/{group_id}", response_model=DataResponse[GroupResponse])
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    _admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[GroupResponse]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    group = await asyncio.to_thread(group_service.update_group, group_id, changes)
    return DataResponse(data=GroupResponse.model_validate(group))


@router.get("/{group_id}/members", response_model=DataResponse[GroupMembersResponse])
async def list_group_members(
    group_id: int,
    _admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[GroupMembersResponse]:
    result = await asyncio.to_thread(group_service.list_members, group_id)
    return DataResponse(
        data=GroupMembersResponse(
            group=GroupResponse.model_validate(result.group),
            members=[AdminUserResponse.model_validate(member) for member in result.members],
        )
    )


@router.put("/{group_id}/members/{user_id}", response_model=DataResponse[GroupMembershipResponse])
async def add_group_member(
    group_id: int,
    user_id: int,
    admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[GroupMembershipResponse]:
    change = await asyncio.to_thread(group_service.add_member, group_id, user_id)
    logger.info("Admin %s added user %s to group %s", admin.id, user_id, group_id)
    return _membership_response(change)


@router.delete(
    "/{group_id}/members/{user_id}", response_model=DataResponse[GroupMembershipResponse]
)
async def remove_group_member(
    group_id: int,
    user_id: int,
    admin: User = Depends(get_admin_user),
    group_service: GroupService = Depends(get_group_service),
) -> DataResponse[GroupMembershipResponse]:
    change = await asyncio.to_thread(group_service.remove_member, group_id, user_id)
    logger.info("Admin %s removed user %s from group %s", admin.id, user_id, group_id)
    return _membership_response(change)
