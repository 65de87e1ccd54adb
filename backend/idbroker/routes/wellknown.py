"""
OIDC discovery routes, served at the root of the broker.

Endpoints:
    GET /.well-known/openid-configuration   → Discovery document
    GET /.well-known/jwks                   → Public signing keys
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..api.dependencies.services import get_id_token_service
from ..services.id_token_service import IdTokenService

router = APIRouter(prefix="/.well-known", tags=["well-known"])


@router.get("/openid-configuration")
async def openid_configuration(
    id_tokens: IdTokenService = Depends(get_id_token_service),
) -> Dict[str, Any]:
    return id_tokens.discovery()


@router.get("/jwks")
async def jwks(id_tokens: IdTokenService = Depends(get_id_token_service)) -> Dict[str, Any]:
    return id_tokens.jwks()
