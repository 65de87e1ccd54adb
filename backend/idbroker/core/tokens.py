# backend/idbroker/core/tokens.py
"""
Signed ephemeral token codec.

Every multi-step ceremony and every session assertion is carried by the caller as
an HS256 JWT. Each purpose is signed with its own key, so a token minted for one
purpose never verifies under another. Decoding never raises: any failure yields
``None`` and the caller maps that to its own error kind.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Type, TypeVar

import jwt
from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from .keys import KeyRing

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
PURPOSE_CLAIM = "pur"


class TokenPurpose(str, Enum):
    REGISTRATION_CHALLENGE = "registration_challenge"
    LOGIN_CHALLENGE = "login_challenge"
    ACCESS_SESSION = "access_session"
    REFRESH_SESSION = "refresh_session"
    REGISTRATION_INTENT = "registration_intent"

    @property
    def enforces_expiry(self) -> bool:
        return self is not TokenPurpose.REFRESH_SESSION


def now_timestamp() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class RegistrationIntentClaims(BaseModel):
    user_id: int
    email: str
    username: str
    name: str
    iat: int
    exp: int


class RegistrationChallengeClaims(BaseModel):
    credential_uuid: str
    reg: Dict[str, Any]
    iat: int
    exp: int


class LoginChallengeClaims(BaseModel):
    auth: Dict[str, Any]
    iat: int
    exp: int


class AccessClaims(BaseModel):
    user_id: int
    session_id: str
    method: str
    email: str
    username: str
    name: str
    webauthn_id: str
    is_admin: bool
    iat: int
    exp: int

    @property
    def session_id_int(self) -> Optional[int]:
        try:
            return int(self.session_id)
        except ValueError:
            return None


class RefreshClaims(BaseModel):
    session_id: str
    refresh_token: str
    iat: Optional[int] = None


ClaimsT = TypeVar("ClaimsT", bound=BaseModel)


class TokenCodec:
    """Encode/decode payloads for a single key ring."""

    def __init__(self, key_ring: "KeyRing") -> None:
        self.key_ring = key_ring

    def encode(self, payload: Dict[str, Any], purpose: TokenPurpose) -> str:
        claims = dict(payload)
        claims[PURPOSE_CLAIM] = purpose.value
        return jwt.encode(claims, self.key_ring.secret_for(purpose), algorithm=ALGORITHM)

    def decode(self, token: Optional[str], purpose: TokenPurpose) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        if purpose.enforces_expiry:
            options: Dict[str, Any] = {"require": ["exp", "iat"]}
        else:
            options = {"verify_exp": False, "require": []}
        try:
            claims = jwt.decode(
                token,
                self.key_ring.secret_for(purpose),
                algorithms=[ALGORITHM],
                options=options,
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected %s token: %s", purpose.value, exc)
            return None
        if claims.pop(PURPOSE_CLAIM, None) != purpose.value:
            logger.debug("Rejected %s token: purpose claim mismatch", purpose.value)
            return None
        return claims

    def encode_claims(self, claims: BaseModel, purpose: TokenPurpose) -> str:
        return self.encode(claims.model_dump(exclude_none=True), purpose)

    def decode_claims(
        self, token: Optional[str], purpose: TokenPurpose, model: Type[ClaimsT]
    ) -> Optional[ClaimsT]:
        """Decode and validate the payload shape; ``None`` on any failure."""
        payload = self.decode(token, purpose)
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.debug("Malformed %s payload: %s", purpose.value, exc)
            return None
