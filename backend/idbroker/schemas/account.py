"""Schemas describing the signed-in user and what they own."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict

from ..models.authorization import UserAppAuthorization
from ..models.client import ClientApplication
from ..models.session import UserSession
from .base import StrictModel


class UserResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    email: str
    username: str
    name: str
    is_admin: bool
    is_suspended: bool
    created_at: Optional[datetime] = None


class GroupResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    slug: str
    name: str
    description: Optional[str] = None
    is_managed: bool


class CredentialResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    name: str
    credential_id: str
    created_at: Optional[datetime] = None


class SessionResponse(StrictModel):
    """Session ids exceed 53 bits, so they are sent as strings."""

    session_id: str
    user_id: int
    credential_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: UserSession) -> "SessionResponse":
        return cls(
            session_id=str(session.session_id),
            user_id=session.user_id,
            credential_id=session.webauthn_id,
            created_at=session.created_at,
        )


class AuthorizationResponse(StrictModel):
    client_id: str
    app_name: str
    app_description: Optional[str] = None
    last_used: datetime
    revoked: bool

    @classmethod
    def from_records(
        cls, authorization: UserAppAuthorization, client: ClientApplication
    ) -> "AuthorizationResponse":
        return cls(
            client_id=client.client_id,
            app_name=client.app_name,
            app_description=client.app_description,
            last_used=authorization.last_used,
            revoked=authorization.revoked,
        )


class UserGroupsResponse(StrictModel):
    groups: List[GroupResponse]


__all__ = [
    "AuthorizationResponse",
    "CredentialResponse",
    "GroupResponse",
    "SessionResponse",
    "UserGroupsResponse",
    "UserResponse",
]
