"""Repository-level dependency providers."""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...repositories.credential_repository import CredentialRepository
from ...repositories.user_repository import UserRepository
from .database import get_db


def get_user_repo(db: Session = Depends(get_db)) -> UserRepository:
    """Provide a UserRepository instance."""

    return UserRepository(db)


def get_credential_repo(db: Session = Depends(get_db)) -> CredentialRepository:
    """Provide a CredentialRepository instance."""

    return CredentialRepository(db)
