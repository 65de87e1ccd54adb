"""
Service layer for the identity broker.

Services own business rules and transactions; repositories own SQL.
"""

from .base import BaseService
from .ceremony_service import CeremonyService
from .grant_store import GrantStore
from .id_token_service import IdTokenService
from .oauth_service import OAuthService
from .override_service import OverrideService
from .policy_service import PolicyService
from .registration_service import RegistrationService
from .session_service import SessionService

__all__ = [
    "BaseService",
    "CeremonyService",
    "GrantStore",
    "IdTokenService",
    "OAuthService",
    "OverrideService",
    "PolicyService",
    "RegistrationService",
    "SessionService",
]
