# backend/idbroker/services/oauth_service.py
"""
Authorization-flow engine.

Endpoints backed by this service:
    preview   validate an authorize request and describe the client
    approve   validate, record the authorization, mint artifacts, build redirect
    token     redeem an authorization code (confidential clients only)
    userinfo  re-validate an access grant and return a fresh identity token

Validation for preview and approve runs in a fixed order and stops at the first
failure: disabled client, response types, redirect uri, access policy, response
mode.
"""

from dataclasses import dataclass
from enum import Enum
import hmac
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from sqlalchemy.orm import Session

from ..core.constants import (
    AUTHORIZATION_SUB_LENGTH,
    OAUTH_ACCESS_TOKEN_TTL_SECONDS,
    OAUTH_SCOPE,
    OAUTH_TOKEN_TYPE,
)
from ..core.exceptions import (
    ApiError,
    ErrorKind,
    InvalidBearerToken,
    OAuthError,
    OAuthErrorKind,
)
from ..core.ids import random_alphanumeric
from ..models.authorization import UserAppAuthorization
from ..models.client import ClientApplication
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.authorization_repository import AuthorizationRepository
from ..repositories.client_repository import ClientRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .grant_store import CodeGrant, GrantStore, TokenGrant
from .id_token_service import IdTokenService
from .policy_service import PolicyDecision, PolicyService

logger = logging.getLogger(__name__)

BLOCKED_REDIRECT_SCHEMES = frozenset({"javascript", "data"})
INVALID_CLIENT_MESSAGE = "Client could not be found or has invalid secret"
INVALID_GRANT_MESSAGE = "Code not valid"


class ResponseType(str, Enum):
    CODE = "code"
    TOKEN = "token"
    ID_TOKEN = "id_token"

    @property
    def is_implicit(self) -> bool:
        return self is not ResponseType.CODE


class ResponseMode(str, Enum):
    QUERY = "query"
    FRAGMENT = "fragment"


@dataclass(frozen=True)
class AuthorizeRequest:
    scope: str
    response_type: str
    client_id: str
    redirect_uri: str
    state: Optional[str] = None
    response_mode: Optional[str] = None
    nonce: Optional[str] = None


@dataclass(frozen=True)
class ValidatedAuthorize:
    client: ClientApplication
    response_types: List[ResponseType]
    response_mode: Optional[ResponseMode]
    decision: PolicyDecision


def parse_response_types(raw: Optional[str]) -> Optional[List[ResponseType]]:
    """Whitespace-separated response types; empty means ``code``. None if any is unknown."""
    parsed: List[ResponseType] = []
    for item in (raw or "").split():
        try:
            response_type = ResponseType(item)
        except ValueError:
            return None
        if response_type not in parsed:
            parsed.append(response_type)
    return parsed or [ResponseType.CODE]


def is_allowed_redirect_uri(redirect_uri: str, registered: List[str]) -> bool:
    try:
        parts = urlsplit(redirect_uri)
    except ValueError:
        return False
    if not parts.scheme or parts.scheme.lower() in BLOCKED_REDIRECT_SCHEMES:
        return False
    return redirect_uri in registered


def build_redirect(redirect_uri: str, params: List[Tuple[str, str]], use_fragment: bool) -> str:
    """
    Put the response parameters in the fragment or the query of ``redirect_uri``.

    The registered query component is kept (RFC 6749 section 3.1.2); a
    registered fragment never survives.
    """
    encoded = urlencode(params)
    parts = urlsplit(redirect_uri)
    if use_fragment:
        return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, encoded))
    query = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


class OAuthService(BaseService):
    def __init__(
        self,
        db: Session,
        grant_store: GrantStore,
        id_tokens: IdTokenService,
        policy: Optional[PolicyService] = None,
    ):
        super().__init__(db)
        self.grant_store = grant_store
        self.id_tokens = id_tokens
        self.policy = policy or PolicyService(db)
        self.client_repository = ClientRepository(db)
        self.user_repository = UserRepository(db)
        self.authorization_repository = AuthorizationRepository(db)

    # Authorize

    def validate(self, user: User, request: AuthorizeRequest) -> ValidatedAuthorize:
        client = self.client_repository.get_by_id(request.client_id)
        if client is None:
            raise ApiError(ErrorKind.UNKNOWN_CLIENT)
        if client.is_disabled:
            raise ApiError(ErrorKind.APP_DISABLED)

        response_types = parse_response_types(request.response_type)
        if response_types is None:
            raise ApiError(ErrorKind.INVALID_RESPONSE_TYPE)
        for response_type in response_types:
            enabled = client.allow_implicit_flow if response_type.is_implicit else client.allow_explicit_flow
            if not enabled:
                raise ApiError(ErrorKind.INVALID_RESPONSE_TYPE)

        if not is_allowed_redirect_uri(request.redirect_uri, list(client.redirect_uris or [])):
            raise ApiError(ErrorKind.INVALID_REDIRECT_URI, redirect_uri=request.redirect_uri)

        decision = self.policy.evaluate(user.id, client)
        if not decision.allowed:
            self.logger.info("Access to client %s denied for user %s", client.client_id, user.id)
            raise ApiError(ErrorKind.OAUTH_ACL_DENIED, app_name=client.app_name)

        response_mode: Optional[ResponseMode] = None
        if request.response_mode is not None:
            try:
                response_mode = ResponseMode(request.response_mode)
            except ValueError as exc:
                raise ApiError(ErrorKind.INVALID_RESPONSE_MODE) from exc

        return ValidatedAuthorize(
            client=client,
            response_types=response_types,
            response_mode=response_mode,
            decision=decision,
        )

    @BaseService.measure_operation("preview_authorization")
    def preview(self, user: User, request: AuthorizeRequest) -> ClientApplication:
        return self.validate(user, request).client

    @BaseService.measure_operation("approve_authorization")
    def approve(self, user: User, request: AuthorizeRequest) -> str:
        """Approve an authorize request; returns the redirect target."""
        validated = self.validate(user, request)
        client = validated.client

        with self.transaction():
            authorization = self.authorization_repository.upsert(
                user.id, client.client_id, random_alphanumeric(AUTHORIZATION_SUB_LENGTH)
            )

        params: List[Tuple[str, str]] = []
        for response_type in validated.response_types:
            if response_type is ResponseType.CODE:
                code = self.grant_store.issue_code(
                    CodeGrant(
                        user_id=user.id,
                        client_id=client.client_id,
                        redirect_uri=request.redirect_uri,
                        nonce=request.nonce,
                    )
                )
                params.append(("code", code))
            elif response_type is ResponseType.TOKEN:
                access_token = self.grant_store.issue_access_token(
                    TokenGrant(user_id=user.id, client_id=client.client_id, nonce=request.nonce)
                )
                params.extend(
                    [
                        ("access_token", access_token),
                        ("token_type", OAUTH_TOKEN_TYPE.lower()),
                        ("expires_in", str(OAUTH_ACCESS_TOKEN_TTL_SECONDS)),
                    ]
                )
            elif response_type is ResponseType.ID_TOKEN:
                params.append(
                    (
                        "id_token",
                        self.id_tokens.mint(
                            user=user,
                            client=client,
                            groups=validated.decision.groups,
                            roles=validated.decision.roles,
                            authorization=authorization,
                            nonce=request.nonce,
                        ),
                    )
                )
            prometheus_metrics.record_oauth_grant(response_type.value, "issued")
        if request.state is not None:
            params.append(("state", request.state))

        if validated.response_mode is not None:
            use_fragment = validated.response_mode is ResponseMode.FRAGMENT
        else:
            use_fragment = any(rt.is_implicit for rt in validated.response_types)
        self.logger.info("User %s approved client %s", user.id, client.client_id)
        return build_redirect(request.redirect_uri, params, use_fragment)

    # Token exchange

    def authenticate_client(
        self, client_id: Optional[str], client_secret: Optional[str]
    ) -> ClientApplication:
        if not client_id:
            raise OAuthError(OAuthErrorKind.INVALID_REQUEST, "Missing client_id")
        if not client_secret:
            raise OAuthError(OAuthErrorKind.INVALID_REQUEST, "Missing client_secret")
        client = self.client_repository.get_by_id(client_id)
        if (
            client is None
            or not hmac.compare_digest(client.client_secret.encode(), client_secret.encode())
            or client.is_disabled
        ):
            self.logger.warning("Rejected client authentication for %s", client_id)
            raise OAuthError(OAuthErrorKind.INVALID_CLIENT, INVALID_CLIENT_MESSAGE)
        return client

    def _invalid_grant(self, reason: str) -> OAuthError:
        self.logger.info("Rejected authorization code: %s", reason)
        prometheus_metrics.record_oauth_grant("code_exchange", "rejected")
        return OAuthError(OAuthErrorKind.INVALID_GRANT, INVALID_GRANT_MESSAGE)

    @BaseService.measure_operation("exchange_code")
    def exchange_code(
        self,
        *,
        grant_type: Optional[str],
        code: Optional[str],
        redirect_uri: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
    ) -> Dict[str, Any]:
        client = self.authenticate_client(client_id, client_secret)

        if grant_type != "authorization_code":
            raise OAuthError(
                OAuthErrorKind.UNSUPPORTED_GRANT_TYPE,
                f"Grant type {grant_type!r} is not supported",
            )
        if not code:
            raise OAuthError(OAuthErrorKind.INVALID_REQUEST, "Missing code")

        grant = self.grant_store.redeem_code(code)
        if grant is None:
            raise self._invalid_grant("unknown or expired code")
        if grant.redirect_uri != redirect_uri or grant.client_id != client.client_id:
            raise self._invalid_grant("redirect uri or client mismatch")

        user = self.user_repository.get_by_id(grant.user_id)
        if user is None or user.is_suspended:
            raise self._invalid_grant("user missing or suspended")
        authorization = self.authorization_repository.get(user.id, client.client_id)
        if authorization is None or authorization.revoked:
            raise self._invalid_grant("authorization missing or revoked")
        decision = self.policy.evaluate(user.id, client)
        if not decision.allowed:
            raise self._invalid_grant("access no longer allowed")

        id_token = self.id_tokens.mint(
            user=user,
            client=client,
            groups=decision.groups,
            roles=decision.roles,
            authorization=authorization,
            nonce=grant.nonce,
        )
        token_grant = TokenGrant(user_id=user.id, client_id=client.client_id, nonce=grant.nonce)
        access_token = self.grant_store.issue_access_token(token_grant)
        refresh_token = self.grant_store.issue_refresh_token(token_grant)
        prometheus_metrics.record_oauth_grant("code_exchange", "issued")
        return {
            "access_token": access_token,
            "token_type": OAUTH_TOKEN_TYPE,
            "expires_in": OAUTH_ACCESS_TOKEN_TTL_SECONDS,
            "scope": OAUTH_SCOPE,
            "refresh_token": refresh_token,
            "id_token": id_token,
        }

    # Userinfo

    @BaseService.measure_operation("userinfo")
    def userinfo(self, access_token: Optional[str]) -> str:
        """Fresh identity token for a bearer grant; every failure is ``invalid_token``."""
        if not access_token:
            raise InvalidBearerToken()
        grant = self.grant_store.get_access_token(access_token)
        if grant is None:
            raise InvalidBearerToken()

        user = self.user_repository.get_by_id(grant.user_id)
        if user is None or user.is_suspended:
            raise InvalidBearerToken()
        client = self.client_repository.get_by_id(grant.client_id)
        if client is None or client.is_disabled:
            raise InvalidBearerToken()
        authorization = self.authorization_repository.get(user.id, client.client_id)
        if authorization is None or authorization.revoked:
            raise InvalidBearerToken()
        decision = self.policy.evaluate(user.id, client)
        if not decision.allowed:
            raise InvalidBearerToken()

        return self.id_tokens.mint(
            user=user,
            client=client,
            groups=decision.groups,
            roles=decision.roles,
            authorization=authorization,
            nonce=grant.nonce,
        )

    # Account view of authorizations

    def list_authorizations(
        self, user_id: int
    ) -> List[Tuple[UserAppAuthorization, ClientApplication]]:
        results = []
        for authorization in self.authorization_repository.list_for_user(user_id):
            client = self.client_repository.get_by_id(authorization.client_id)
            if client is not None:
                results.append((authorization, client))
        return results

    def revoke_authorization(self, user_id: int, client_id: str) -> None:
        with self.transaction():
            revoked = self.authorization_repository.revoke(user_id, client_id)
        if not revoked:
            raise ApiError(ErrorKind.UNKNOWN_CLIENT)
        self.logger.info("User %s revoked client %s", user_id, client_id)
