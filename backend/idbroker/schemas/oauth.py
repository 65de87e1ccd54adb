"""Schemas for the authorization flow and token endpoint."""

from typing import Optional

from pydantic import ConfigDict

from ..services.oauth_service import AuthorizeRequest
from .base import StrictModel, StrictRequestModel


class AuthorizeRequestBody(StrictRequestModel):
    scope: str = ""
    response_type: str = ""
    client_id: str
    redirect_uri: str
    state: Optional[str] = None
    response_mode: Optional[str] = None
    nonce: Optional[str] = None

    def to_request(self) -> AuthorizeRequest:
        return AuthorizeRequest(
            scope=self.scope,
            response_type=self.response_type,
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            state=self.state,
            response_mode=self.response_mode,
            nonce=self.nonce,
        )


class ClientPreviewResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    client_id: str
    app_name: str
    app_description: Optional[str] = None


class ApproveResponse(StrictModel):
    redirect_to: str


class OAuthTokenResponse(StrictModel):
    access_token: str
    token_type: str
    expires_in: int
    scope: str
    refresh_token: str
    id_token: str


__all__ = [
    "ApproveResponse",
    "AuthorizeRequestBody",
    "ClientPreviewResponse",
    "OAuthTokenResponse",
]
