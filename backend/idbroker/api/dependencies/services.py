# backend/idbroker/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Stateless collaborators (key ring, token codec, ceremony backend, grant store,
identity token minter) are process-wide singletons; services are built per
request around the request's database session. Tests replace the singletons
through ``app.dependency_overrides``.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.keys import KeyRing, get_key_ring
from ...core.redis import get_redis_client
from ...core.tokens import TokenCodec
from ...services.ceremony_service import CeremonyService
from ...services.client_service import ClientService
from ...services.email_console import ConsoleEmailService
from ...services.grant_store import GrantStore
from ...services.group_service import GroupService
from ...services.id_token_service import IdTokenService
from ...services.oauth_service import OAuthService
from ...services.override_service import OverrideService
from ...services.policy_service import PolicyService
from ...services.registration_service import RegistrationService
from ...services.session_service import SessionService
from ...services.user_service import UserService
from ...services.webauthn_backend import CeremonyBackend, PyWebAuthnBackend
from .database import get_db

logger = logging.getLogger(__name__)


def get_key_ring_dep() -> KeyRing:
    return get_key_ring()


def get_token_codec(key_ring: KeyRing = Depends(get_key_ring_dep)) -> TokenCodec:
    return TokenCodec(key_ring)


@lru_cache(maxsize=1)
def _ceremony_backend_singleton() -> PyWebAuthnBackend:
    return PyWebAuthnBackend(
        rp_id=settings.webauthn_rp_id,
        rp_name=settings.webauthn_rp_name,
        origin=settings.webauthn_rp_origin,
    )


def get_ceremony_backend() -> CeremonyBackend:
    return _ceremony_backend_singleton()


def get_grant_store() -> GrantStore:
    return GrantStore(get_redis_client(), single_use_codes=settings.grant_single_use)


def get_id_token_service(key_ring: KeyRing = Depends(get_key_ring_dep)) -> IdTokenService:
    return IdTokenService(key_ring, settings.oidc_issuer_uri)


@lru_cache(maxsize=1)
def get_email_service() -> ConsoleEmailService:
    """Get the configured email service (console only)."""
    return ConsoleEmailService(settings.email_from_address)


def get_session_service(
    db: Session = Depends(get_db), codec: TokenCodec = Depends(get_token_codec)
) -> SessionService:
    return SessionService(db, codec)


def get_ceremony_service(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    backend: CeremonyBackend = Depends(get_ceremony_backend),
    session_service: SessionService = Depends(get_session_service),
) -> CeremonyService:
    return CeremonyService(db, codec, backend, session_service)


def get_policy_service(db: Session = Depends(get_db)) -> PolicyService:
    return PolicyService(db)


def get_oauth_service(
    db: Session = Depends(get_db),
    grant_store: GrantStore = Depends(get_grant_store),
    id_tokens: IdTokenService = Depends(get_id_token_service),
    policy: PolicyService = Depends(get_policy_service),
) -> OAuthService:
    return OAuthService(db, grant_store, id_tokens, policy)


def get_override_service(db: Session = Depends(get_db)) -> OverrideService:
    return OverrideService(db)


def get_registration_service(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    email_service: ConsoleEmailService = Depends(get_email_service),
) -> RegistrationService:
    return RegistrationService(db, codec, email_service)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_group_service(db: Session = Depends(get_db)) -> GroupService:
    return GroupService(db)


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    return ClientService(db)
