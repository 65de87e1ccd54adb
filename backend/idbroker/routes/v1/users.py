# backend/idbroker/routes/v1/users.py
"""
User administration routes - API v1 (admin only)

Endpoints:
    GET /                                → List users
    POST /                               → Create a user (201)
    GET /{user_id}                       → A user and their groups
    PATCH /{user_id}                     → Update profile, admin and suspension flags
    POST /{user_id}/registration-link    → Mint and mail a passkey registration link
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ...api.dependencies.auth import get_admin_user
from ...api.dependencies.services import get_registration_service, get_user_service
from ...models.user import User
from ...schemas.account import GroupResponse
from ...schemas.admin import (
    AdminUserResponse,
    RegistrationLinkResponse,
    UserCreate,
    UserDetailResponse,
    UserUpdate,
)
from ...schemas.base import DataResponse
from ...services.registration_service import RegistrationService
from ...services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users-v1"])


@router.get("", response_model=DataResponse[List[AdminUserResponse]])
async def list_users(
    _admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> DataResponse[List[AdminUserResponse]]:
    users = await asyncio.to_thread(user_service.list_users)
    return DataResponse(data=[AdminUserResponse.model_validate(user) for user in users])


@router.post(
    "",
    response_model=DataResponse[AdminUserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    payload: UserCreate,
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> DataResponse[AdminUserResponse]:
    user = await asyncio.to_thread(user_service.create_user, payload.model_dump())
    logger.info("Admin %s created user %s", admin.id, user.id)
    return DataResponse(data=AdminUserResponse.model_validate(user))


@router.get("/{user_id}", response_model=DataResponse[UserDetailResponse])
async def get_user(
    user_id: int,
    _admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> DataResponse[UserDetailResponse]:
    detail = await asyncio.to_thread(user_service.get_user, user_id)
    return DataResponse(
        data=UserDetailResponse(
            user=AdminUserResponse.model_validate(detail.user),
            groups=[GroupResponse.model_validate(group) for group in detail.groups],
        )
    )


@router.patch("/{user_id}", response_model=DataResponse[AdminUserResponse])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> DataResponse[AdminUserResponse]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    user = await asyncio.to_thread(user_service.update_user, user_id, changes)
    logger.info("Admin %s updated user %s: %s", admin.id, user_id, sorted(changes))
    return DataResponse(data=AdminUserResponse.model_validate(user))


@router.post("/{user_id}/registration-link", response_model=DataResponse[RegistrationLinkResponse])
async def create_registration_link(
    user_id: int,
    admin: User = Depends(get_admin_user),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> DataResponse[RegistrationLinkResponse]:
    link = await asyncio.to_thread(registration_service.send_link, user_id)
    logger.info("Admin %s issued a registration link for user %s", admin.id, user_id)
    return DataResponse(data=RegistrationLinkResponse(url=link.url, expires_at=link.expires_at))
