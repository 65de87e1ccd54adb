# backend/idbroker/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

The bearer access token is decoded statelessly into ``AccessClaims``. The claims'
display fields are advisory; every dependency that hands out a ``User``
re-reads the row, so deletion and suspension take effect on the next request
rather than when the access token expires.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ...core.exceptions import ApiError, ErrorKind
from ...core.tokens import AccessClaims, TokenCodec, TokenPurpose
from ...models.user import User
from ...repositories.user_repository import UserRepository
from .database import get_db
from .services import get_token_codec

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_access_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> AccessClaims:
    if credentials is None:
        raise ApiError(ErrorKind.LOGIN_REQUIRED)
    claims = codec.decode_claims(
        credentials.credentials, TokenPurpose.ACCESS_SESSION, AccessClaims
    )
    if claims is None:
        raise ApiError(ErrorKind.LOGIN_REQUIRED)
    return claims


async def get_current_user(
    claims: AccessClaims = Depends(get_access_claims),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller; deleted or suspended users are rejected."""
    user = await asyncio.to_thread(UserRepository(db).get_by_id, claims.user_id)
    if user is None:
        raise ApiError(ErrorKind.USER_DELETED)
    if user.is_suspended:
        raise ApiError(ErrorKind.USER_SUSPENDED)
    return user


async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        logger.info("Non-admin user %s attempted an admin operation", current_user.id)
        raise ApiError(ErrorKind.ADMIN_REQUIRED)
    return current_user
