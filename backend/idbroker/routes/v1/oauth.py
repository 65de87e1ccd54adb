# backend/idbroker/routes/v1/oauth.py
"""
OAuth routes - API v1

Endpoints:
    POST /authorize/preview              → Validate an authorize request, describe the client
    POST /authorize/approve              → Approve it and get the redirect target
    POST /token                          → Redeem an authorization code (form encoded)
    GET /userinfo                        → Fresh identity token for an OAuth access token
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Response
from fastapi.responses import JSONResponse
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.services import get_oauth_service
from ...models.user import User
from ...schemas.base import DataResponse
from ...schemas.oauth import (
    ApproveResponse,
    AuthorizeRequestBody,
    ClientPreviewResponse,
    OAuthTokenResponse,
)
from ...services.oauth_service import OAuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth-v1"])

client_basic_auth = HTTPBasic(auto_error=False)
access_token_bearer = HTTPBearer(auto_error=False)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


@router.post("/authorize/preview", response_model=DataResponse[ClientPreviewResponse])
async def preview_authorization(
    payload: AuthorizeRequestBody,
    current_user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> DataResponse[ClientPreviewResponse]:
    client = await asyncio.to_thread(oauth_service.preview, current_user, payload.to_request())
    return DataResponse(data=ClientPreviewResponse.model_validate(client))


@router.post("/authorize/approve", response_model=DataResponse[ApproveResponse])
async def approve_authorization(
    payload: AuthorizeRequestBody,
    current_user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> DataResponse[ApproveResponse]:
    redirect_to = await asyncio.to_thread(
        oauth_service.approve, current_user, payload.to_request()
    )
    return DataResponse(data=ApproveResponse(redirect_to=redirect_to))


@router.post("/token", response_model=OAuthTokenResponse)
async def exchange_token(
    grant_type: Optional[str] = Form(None),
    code: Optional[str] = Form(None),
    redirect_uri: Optional[str] = Form(None),
    client_id: Optional[str] = Form(None),
    client_secret: Optional[str] = Form(None),
    basic: Optional[HTTPBasicCredentials] = Depends(client_basic_auth),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> JSONResponse:
    """Client credentials from HTTP Basic take precedence over form fields."""
    if basic is not None:
        client_id, client_secret = basic.username, basic.password
    body = await asyncio.to_thread(
        oauth_service.exchange_code,
        grant_type=grant_type,
        code=code,
        redirect_uri=redirect_uri,
        client_id=client_id,
        client_secret=client_secret,
    )
    return JSONResponse(OAuthTokenResponse(**body).model_dump(), headers=NO_STORE_HEADERS)


@router.get("/userinfo", response_class=Response)
async def userinfo(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(access_token_bearer),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> Response:
    token = credentials.credentials if credentials is not None else None
    id_token = await asyncio.to_thread(oauth_service.userinfo, token)
    return Response(content=id_token, media_type="application/jwt", headers=NO_STORE_HEADERS)
