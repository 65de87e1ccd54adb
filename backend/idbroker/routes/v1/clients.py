# backend/idbroker/routes/v1/clients.py
"""
Client administration routes - API v1 (admin only)

Endpoints:
    GET /                                                      → List clients
    POST /                                                     → Register a client, returns its secret (201)
    GET /{client_id}                                           → One client
    PATCH /{client_id}                                         → Update name, redirect URIs and flow flags
    POST /{client_id}/rotate-secret                            → Replace the secret
    GET /{client_id}/overrides                                 → All overrides for a client
    PATCH /{client_id}/group-overrides/permissions             → Replace group permission overrides
    PATCH /{client_id}/group-overrides/roles                   → Replace group role overrides
    PATCH /{client_id}/user-overrides/{user_id}/permission     → Set a user permission override
    DELETE /{client_id}/user-overrides/{user_id}/permission    → Remove it (204)
    PATCH /{client_id}/user-overrides/{user_id}/roles/{role}   → Set a user role override
    DELETE /{client_id}/user-overrides/{user_id}/roles/{role}  → Remove it (204)
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies.auth import get_admin_user
from ...api.dependencies.services import get_client_service, get_override_service
from ...models.client import ClientApplication
from ...models.user import User
from ...schemas.admin import (
    ClientCreate,
    ClientOverridesResponse,
    ClientResponse,
    ClientSecretResponse,
    ClientUpdate,
    GroupPermissionOverrideOut,
    GroupPermissionOverridesUpdate,
    GroupRoleOverrideOut,
    GroupRoleOverridesUpdate,
    UserOverrideUpdate,
    UserPermissionOverrideOut,
    UserRoleOverrideOut,
)
from ...schemas.base import DataResponse
from ...services.client_service import ClientService
from ...services.override_service import OverrideService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["clients-v1"])


def _secret_response(client: ClientApplication) -> DataResponse[ClientSecretResponse]:
    return DataResponse(
        data=ClientSecretResponse(
            client=ClientResponse.model_validate(client), client_secret=client.client_secret
        )
    )


@router.get("", response_model=DataResponse[List[ClientResponse]])
async def list_clients(
    _admin: User = Depends(get_admin_user),
    client_service: ClientService = Depends(get_client_service),
) -> DataResponse[List[ClientResponse]]:
    clients = await asyncio.to_thread(client_service.list_clients)
    return DataResponse(data=[ClientResponse.model_validate(client) for client in clients])


@router.post(
    "",
    response_model=DataResponse[ClientSecretResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    payload: ClientCreate,
    admin: User = Depends(get_admin_user),
    client_service: ClientService = Depends(get_client_service),
) -> DataResponse[ClientSecretResponse]:
    client = await asyncio.to_thread(client_service.create_client, payload.model_dump())
    logger.info("Admin %s registered client %s", admin.id, client.client_id)
    return _secret_response(client)


@router.get("/{client_id}", response_model=DataResponse[ClientResponse])
async def get_client(
    client_id: str,
    _admin: User = Depends(get_admin_user),
    client_service: ClientService = Depends(get_client_service),
) -> DataResponse[ClientResponse]:
    client = await asyncio.to_thread(client_service.get_client, client_id)
    return DataResponse(data=ClientResponse.model_validate(client))


@router.patch("/{client_id}", response_model=DataResponse[ClientResponse])
async def update_client(
    client_id: str,
    payload: ClientUpdate,
    _admin: User = Depends(get_admin_user),
    client_service: ClientService = Depends(get_client_service),
) -> DataResponse[ClientResponse]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    client = await asyncio.to_thread(client_service.update_client, client_id, changes)
    return DataResponse(data=ClientResponse.model_validate(client))


@router.post("/{client_id}/rotate-secret", response_model=DataResponse[ClientSecretResponse])
async def rotate_client_secret(
    client_id: str,
    admin: User = Depends(get_admin_user),
    client_service: ClientService = Depends(get_client_service),
) -> DataResponse[ClientSecretResponse]:
    client = await asyncio.to_thread(client_service.rotate_secret, client_id)
    logger.info("Admin %s rotated the secret of client %s", admin.id, client_id)
    return _secret_response(client)


@router.get("/{client_id}/overrides", response_model=DataResponse[ClientOverridesResponse])
async def get_client_overrides(
    client_id: str,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> DataResponse[ClientOverridesResponse]:
    overrides = await asyncio.to_thread(override_service.get_overrides, client_id)
    return DataResponse(
        data=ClientOverridesResponse(
            client_id=overrides.client.client_id,
            is_managed=overrides.client.is_managed,
            group_permissions=[
                GroupPermissionOverrideOut.model_validate(row) for row in overrides.group_permissions
            ],
            user_permissions=[
                UserPermissionOverrideOut.model_validate(row) for row in overrides.user_permissions
            ],
            group_roles=[GroupRoleOverrideOut.model_validate(row) for row in overrides.group_roles],
            user_roles=[UserRoleOverrideOut.model_validate(row) for row in overrides.user_roles],
        )
    )


@router.patch(
    "/{client_id}/group-overrides/permissions",
    response_model=DataResponse[List[GroupPermissionOverrideOut]],
)
async def replace_group_permission_overrides(
    client_id: str,
    payload: GroupPermissionOverridesUpdate,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> DataResponse[List[GroupPermissionOverrideOut]]:
    rows = [(o.group_id, o.granted, o.override_priority) for o in payload.overrides]
    saved = await asyncio.to_thread(override_service.replace_group_permissions, client_id, rows)
    return DataResponse(data=[GroupPermissionOverrideOut.model_validate(row) for row in saved])


@router.patch(
    "/{client_id}/group-overrides/roles",
    response_model=DataResponse[List[GroupRoleOverrideOut]],
)
async def replace_group_role_overrides(
    client_id: str,
    payload: GroupRoleOverridesUpdate,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> DataResponse[List[GroupRoleOverrideOut]]:
    rows = [(o.group_id, o.role, o.granted, o.override_priority) for o in payload.overrides]
    saved = await asyncio.to_thread(override_service.replace_group_roles, client_id, rows)
    return DataResponse(data=[GroupRoleOverrideOut.model_validate(row) for row in saved])


@router.patch(
    "/{client_id}/user-overrides/{user_id}/permission",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def set_user_permission_override(
    client_id: str,
    user_id: int,
    payload: UserOverrideUpdate,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> Response:
    await asyncio.to_thread(
        override_service.set_user_permission, client_id, user_id, payload.granted
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{client_id}/user-overrides/{user_id}/permission",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_user_permission_override(
    client_id: str,
    user_id: int,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> Response:
    await asyncio.to_thread(override_service.delete_user_permission, client_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/{client_id}/user-overrides/{user_id}/roles/{role}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def set_user_role_override(
    client_id: str,
    user_id: int,
    role: str,
    payload: UserOverrideUpdate,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> Response:
    await asyncio.to_thread(
        override_service.set_user_role, client_id, user_id, role, payload.granted
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{client_id}/user-overrides/{user_id}/roles/{role}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_user_role_override(
    client_id: str,
    user_id: int,
    role: str,
    _admin: User = Depends(get_admin_user),
    override_service: OverrideService = Depends(get_override_service),
) -> Response:
    await asyncio.to_thread(override_service.delete_user_role, client_id, user_id, role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
