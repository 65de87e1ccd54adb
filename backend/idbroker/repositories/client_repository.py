# backend/idbroker/repositories/client_repository.py
from sqlalchemy.orm import Session

from ..models.client import ClientApplication
from .base_repository import BaseRepository


class ClientRepository(BaseRepository[ClientApplication]):
    def __init__(self, db: Session):
        super().__init__(db, ClientApplication)
