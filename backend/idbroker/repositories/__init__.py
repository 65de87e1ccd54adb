"""
Repository layer for the identity broker.

Repositories own every SQL statement; services own transactions.
"""

from .authorization_repository import AuthorizationRepository
from .base_repository import BaseRepository
from .client_repository import ClientRepository
from .credential_repository import CredentialRepository
from .override_repository import OverrideRepository
from .session_repository import SessionRepository
from .user_repository import GroupRepository, UserRepository

__all__ = [
    "AuthorizationRepository",
    "BaseRepository",
    "ClientRepository",
    "CredentialRepository",
    "GroupRepository",
    "OverrideRepository",
    "SessionRepository",
    "UserRepository",
]
