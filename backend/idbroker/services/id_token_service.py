# backend/idbroker/services/id_token_service.py
"""
OIDC identity tokens, the published key set and the discovery document.

Identity tokens are RS256 JWTs signed with the newest loaded RSA key; the key id
goes in the header so relying parties can pick the right entry from the JWKS.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import jwt
from jwt.algorithms import RSAAlgorithm

from ..core.constants import ID_TOKEN_TTL_SECONDS
from ..core.keys import KeyRing
from ..core.tokens import now_timestamp
from ..models.authorization import UserAppAuthorization
from ..models.client import ClientApplication
from ..models.user import Group, User

logger = logging.getLogger(__name__)

ID_TOKEN_ALGORITHM = "RS256"


class IdTokenService:
    def __init__(self, key_ring: KeyRing, issuer: str):
        self.key_ring = key_ring
        self.issuer = issuer.rstrip("/")

    def mint(
        self,
        *,
        user: User,
        client: ClientApplication,
        groups: Sequence[Group],
        roles: Sequence[str],
        authorization: UserAppAuthorization,
        nonce: Optional[str] = None,
    ) -> str:
        iat = now_timestamp()
        claims: Dict[str, Any] = {
            "iss": self.issuer,
            "sub": authorization.sub,
            "aud": client.client_id,
            "exp": iat + ID_TOKEN_TTL_SECONDS,
            "iat": iat,
            "auth_time": iat,
            "name": user.name,
            "preferred_username": user.username,
            "email": user.email,
            "email_verified": True,
            "groups": [group.slug for group in groups],
            "roles": list(roles),
        }
        if nonce is not None:
            claims["nonce"] = nonce
        kid = self.key_ring.current_kid
        return jwt.encode(
            claims,
            self.key_ring.signing_keys[kid],
            algorithm=ID_TOKEN_ALGORITHM,
            headers={"kid": str(kid)},
        )

    def jwks(self) -> Dict[str, List[Dict[str, Any]]]:
        keys = []
        for kid in sorted(self.key_ring.signing_keys, reverse=True):
            public_key = self.key_ring.signing_keys[kid].public_key()
            jwk = RSAAlgorithm.to_jwk(public_key, as_dict=True)
            jwk.update({"use": "sig", "alg": ID_TOKEN_ALGORITHM, "kid": str(kid)})
            keys.append(jwk)
        return {"keys": keys}

    def discovery(self) -> Dict[str, Any]:
        return {
            "issuer": self.issuer,
            "authorization_endpoint": f"{self.issuer}/oauth/authorize",
            "token_endpoint": f"{self.issuer}/v1/oauth/token",
            "userinfo_endpoint": f"{self.issuer}/v1/oauth/userinfo",
            "jwks_uri": f"{self.issuer}/.well-known/jwks",
            "response_types_supported": ["code", "id_token", "id_token token", "code id_token token"],
            "response_modes_supported": ["query", "fragment"],
            "grant_types_supported": ["authorization_code"],
            "subject_types_supported": ["pairwise", "public"],
            "id_token_signing_alg_values_supported": [ID_TOKEN_ALGORITHM],
            "userinfo_signing_alg_values_supported": [ID_TOKEN_ALGORITHM],
            "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post"],
            "scopes_supported": ["openid", "profile", "email"],
            "claims_supported": [
                "iss",
                "sub",
                "aud",
                "exp",
                "iat",
                "auth_time",
                "nonce",
                "name",
                "preferred_username",
                "email",
                "email_verified",
                "groups",
                "roles",
            ],
        }
