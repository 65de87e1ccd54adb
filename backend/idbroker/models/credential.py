# backend/idbroker/models/credential.py
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


class Credential(Base):
    """
    A registered passkey.

    ``serialized_passkey`` is opaque to everything except the ceremony backend.
    ``credential_id`` is the base64url credential id the authenticator reports.
    """

    __tablename__ = "user_webauthn_credentials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    credential_uuid: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.credential_uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credential_id: Mapped[str] = mapped_column(String(1024), nullable=False)
    serialized_passkey: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Credential {self.id} {self.name}>"
