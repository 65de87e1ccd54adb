# backend/idbroker/services/client_service.py
"""
Administrator management of client applications.

The client id and secret are generated here; the secret is only ever returned
by ``create_client`` and ``rotate_secret``. Managed clients are read-only.
"""

from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.constants import OPAQUE_TOKEN_LENGTH
from ..core.exceptions import ApiError, ErrorKind
from ..core.ids import random_alphanumeric
from ..models.client import ClientApplication
from ..repositories.client_repository import ClientRepository
from .base import BaseService

CLIENT_FIELDS = frozenset(
    {
        "app_name",
        "app_description",
        "redirect_uris",
        "is_disabled",
        "default_allowed",
        "allow_explicit_flow",
        "allow_implicit_flow",
    }
)


class ClientService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = ClientRepository(db)

    def get_client(self, client_id: str) -> ClientApplication:
        client = self.repository.get_by_id(client_id)
        if client is None:
            raise ApiError(ErrorKind.UNKNOWN_CLIENT)
        return client

    def _get_mutable_client(self, client_id: str) -> ClientApplication:
        client = self.get_client(client_id)
        if client.is_managed:
            raise ApiError(ErrorKind.MANAGED_OBJECT)
        return client

    def list_clients(self) -> List[ClientApplication]:
        return self.repository.get_all()

    @BaseService.measure_operation("create_client")
    def create_client(self, fields: Dict[str, Any]) -> ClientApplication:
        values = {key: value for key, value in fields.items() if key in CLIENT_FIELDS}
        with self.transaction():
            client = self.repository.create(**values)
        self.logger.info("Registered client %s (%s)", client.client_id, client.app_name)
        return client

    @BaseService.measure_operation("update_client")
    def update_client(self, client_id: str, changes: Dict[str, Any]) -> ClientApplication:
        client = self._get_mutable_client(client_id)
        values = {key: value for key, value in changes.items() if key in CLIENT_FIELDS}
        with self.transaction():
            self.repository.update(client, **values)
        return client

    @BaseService.measure_operation("rotate_client_secret")
    def rotate_secret(self, client_id: str) -> ClientApplication:
        """Replace the secret; the previous one stops working immediately."""
        client = self._get_mutable_client(client_id)
        with self.transaction():
            self.repository.update(client, client_secret=random_alphanumeric(OPAQUE_TOKEN_LENGTH))
        self.logger.info("Rotated secret for client %s", client.client_id)
        return client
