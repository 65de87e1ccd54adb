# backend/idbroker/models/client.py
"""
Client application (relying party) model.

Clients are registered by administrators. The authorization flow only reads
them: flow flags gate response types, ``redirect_uris`` is the exact-match
allow-list and ``default_allowed`` seeds the access decision.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..core.constants import OPAQUE_TOKEN_LENGTH
from ..core.ids import generate_ulid, random_alphanumeric
from ..database import Base


class ClientApplication(Base):
    __tablename__ = "clients"

    client_id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    client_secret: Mapped[str] = mapped_column(
        String(128), nullable=False, default=lambda: random_alphanumeric(OPAQUE_TOKEN_LENGTH)
    )
    app_name: Mapped[str] = mapped_column(String(255), nullable=False)
    app_description: Mapped[Optional[str]] = mapped_column(Text)
    redirect_uris: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_managed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_explicit_flow: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_implicit_flow: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ClientApplication {self.client_id} {self.app_name}>"
