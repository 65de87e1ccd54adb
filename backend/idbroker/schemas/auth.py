"""Request and response schemas for the passkey ceremony and session routes."""

from typing import Any, Dict

from pydantic import Field

from .account import CredentialResponse, SessionResponse, UserResponse
from .base import StrictModel, StrictRequestModel


class RegistrationInitiateRequest(StrictRequestModel):
    registration_token: str = Field(..., min_length=1)


class RegistrationFinalizeRequest(StrictRequestModel):
    challenge_signature: str = Field(..., min_length=1)
    registration_token: str = Field(..., min_length=1)
    pk_credential: Dict[str, Any]


class LoginFinalizeRequest(StrictRequestModel):
    challenge_signature: str = Field(..., min_length=1)
    pk_credential: Dict[str, Any]


class RefreshRequest(StrictRequestModel):
    refresh_token: str = Field(..., min_length=1)


class ChallengeResponse(StrictModel):
    """Browser options plus the signed token that carries the ceremony state."""

    challenge_signature: str
    challenge_response: Dict[str, Any]


class TokenPairResponse(StrictModel):
    access_token: str
    refresh_token: str


class LoginResponse(TokenPairResponse):
    session: SessionResponse
    credential: CredentialResponse
    user: UserResponse


__all__ = [
    "ChallengeResponse",
    "LoginFinalizeRequest",
    "LoginResponse",
    "RefreshRequest",
    "RegistrationFinalizeRequest",
    "RegistrationInitiateRequest",
    "TokenPairResponse",
]
