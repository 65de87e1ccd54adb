# backend/idbroker/repositories/credential_repository.py
from typing import List

from sqlalchemy.orm import Session

from ..models.credential import Credential
from .base_repository import BaseRepository


class CredentialRepository(BaseRepository[Credential]):
    """Passkeys, always addressed through the owner's correlation id."""

    def __init__(self, db: Session):
        super().__init__(db, Credential)

    def list_for_credential_uuid(self, credential_uuid: str) -> List[Credential]:
        return (
            self._build_query()
            .filter(Credential.credential_uuid == credential_uuid)
            .order_by(Credential.id)
            .all()
        )
