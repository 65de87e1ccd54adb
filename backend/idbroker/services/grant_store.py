# backend/idbroker/services/grant_store.py
"""
Ephemeral Grant Store

TTL-backed storage for OAuth artifacts, kept in Redis rather than the relational
store:

    oauth_code:<64 chars>           {user_id, client_id, nonce, redirect_uri}  300s
    oauth_access_token:<64 chars>   {user_id, client_id, nonce}                3600s
    oauth_refresh_token:<64 chars>  {user_id, client_id, nonce}                14 days

Values are JSON. Redis failures are not swallowed: an unreachable store is an
internal error for the request that needed it.
"""

from dataclasses import asdict, dataclass
import json
import logging
from typing import Any, Dict, Optional

from redis import Redis
from redis.exceptions import RedisError

from ..core.constants import (
    OAUTH_ACCESS_TOKEN_PREFIX,
    OAUTH_ACCESS_TOKEN_TTL_SECONDS,
    OAUTH_CODE_PREFIX,
    OAUTH_CODE_TTL_SECONDS,
    OAUTH_REFRESH_TOKEN_PREFIX,
    OAUTH_REFRESH_TOKEN_TTL_SECONDS,
    OPAQUE_TOKEN_LENGTH,
)
from ..core.exceptions import ApiError, ErrorKind
from ..core.ids import random_alphanumeric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeGrant:
    user_id: int
    client_id: str
    redirect_uri: str
    nonce: Optional[str] = None


@dataclass(frozen=True)
class TokenGrant:
    user_id: int
    client_id: str
    nonce: Optional[str] = None


class GrantStore:
    def __init__(self, redis_client: Redis, *, single_use_codes: bool = False):
        self.redis = redis_client
        self.single_use_codes = single_use_codes

    def _put(self, prefix: str, ttl: int, value: Dict[str, Any]) -> str:
        key = random_alphanumeric(OPAQUE_TOKEN_LENGTH)
        try:
            self.redis.setex(f"{prefix}{key}", ttl, json.dumps(value))
        except RedisError as exc:
            logger.error("Grant store write failed: %s", exc)
            raise ApiError(ErrorKind.INTERNAL) from exc
        return key

    def _get(self, prefix: str, key: str, *, consume: bool = False) -> Optional[Dict[str, Any]]:
        if not key:
            return None
        try:
            if consume:
                raw = self.redis.getdel(f"{prefix}{key}")
            else:
                raw = self.redis.get(f"{prefix}{key}")
        except RedisError as exc:
            logger.error("Grant store read failed: %s", exc)
            raise ApiError(ErrorKind.INTERNAL) from exc
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed grant under %s", prefix)
            return None
        return payload if isinstance(payload, dict) else None

    def issue_code(self, grant: CodeGrant) -> str:
        return self._put(OAUTH_CODE_PREFIX, OAUTH_CODE_TTL_SECONDS, asdict(grant))

    def issue_access_token(self, grant: TokenGrant) -> str:
        return self._put(OAUTH_ACCESS_TOKEN_PREFIX, OAUTH_ACCESS_TOKEN_TTL_SECONDS, asdict(grant))

    def issue_refresh_token(self, grant: TokenGrant) -> str:
        return self._put(
            OAUTH_REFRESH_TOKEN_PREFIX, OAUTH_REFRESH_TOKEN_TTL_SECONDS, asdict(grant)
        )

    def redeem_code(self, code: str) -> Optional[CodeGrant]:
        """Look up a code; deletes it when single-use codes are enabled."""
        payload = self._get(OAUTH_CODE_PREFIX, code, consume=self.single_use_codes)
        if payload is None:
            return None
        try:
            return CodeGrant(**payload)
        except TypeError:
            return None

    def get_access_token(self, token: str) -> Optional[TokenGrant]:
        payload = self._get(OAUTH_ACCESS_TOKEN_PREFIX, token)
        if payload is None:
            return None
        try:
            return TokenGrant(**payload)
        except TypeError:
            return None
