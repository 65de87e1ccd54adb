# backend/idbroker/models/authorization.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


class UserAppAuthorization(Base):
    """
    A user's consent record for one client application.

    ``sub`` is the stable pseudonymous subject handed to the client; it is minted
    on the first approval and preserved on every later one.
    """

    __tablename__ = "user_app_authorizations"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    client_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clients.client_id", ondelete="CASCADE"), primary_key=True
    )
    sub: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    last_used: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserAppAuthorization user={self.user_id} client={self.client_id}>"
