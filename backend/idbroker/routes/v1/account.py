# backend/idbroker/routes/v1/account.py
"""
Account routes - API v1

The signed-in user's own view under /v1/user.

Endpoints:
    GET /                                → Current user profile
    GET /groups                          → Groups the user belongs to
    GET /credentials                     → Registered passkeys
    GET /authorizations                  → Applications the user has approved
    DELETE /authorizations/{client_id}   → Revoke an application's access (204)
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.repositories import get_credential_repo, get_user_repo
from ...api.dependencies.services import get_oauth_service
from ...models.user import User
from ...repositories.credential_repository import CredentialRepository
from ...repositories.user_repository import UserRepository
from ...schemas.account import (
    AuthorizationResponse,
    CredentialResponse,
    GroupResponse,
    UserResponse,
)
from ...schemas.base import DataResponse
from ...services.oauth_service import OAuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["account-v1"])


@router.get("", response_model=DataResponse[UserResponse])
async def get_me(current_user: User = Depends(get_current_user)) -> DataResponse[UserResponse]:
    return DataResponse(data=UserResponse.model_validate(current_user))


@router.get("/groups", response_model=DataResponse[List[GroupResponse]])
async def list_my_groups(
    current_user: User = Depends(get_current_user),
    user_repository: UserRepository = Depends(get_user_repo),
) -> DataResponse[List[GroupResponse]]:
    groups = await asyncio.to_thread(user_repository.get_groups, current_user.id)
    return DataResponse(data=[GroupResponse.model_validate(group) for group in groups])


@router.get("/credentials", response_model=DataResponse[List[CredentialResponse]])
async def list_my_credentials(
    current_user: User = Depends(get_current_user),
    credential_repository: CredentialRepository = Depends(get_credential_repo),
) -> DataResponse[List[CredentialResponse]]:
    credentials = await asyncio.to_thread(
        credential_repository.list_for_credential_uuid, current_user.credential_uuid
    )
    return DataResponse(data=[CredentialResponse.model_validate(c) for c in credentials])


@router.get("/authorizations", response_model=DataResponse[List[AuthorizationResponse]])
async def list_my_authorizations(
    current_user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> DataResponse[List[AuthorizationResponse]]:
    records = await asyncio.to_thread(oauth_service.list_authorizations, current_user.id)
    return DataResponse(
        data=[
            AuthorizationResponse.from_records(authorization, client)
            for authorization, client in records
        ]
    )


@router.delete(
    "/authorizations/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def revoke_my_authorization(
    client_id: str,
    current_user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> Response:
    await asyncio.to_thread(oauth_service.revoke_authorization, current_user.id, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
