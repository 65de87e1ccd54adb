# backend/idbroker/models/user.py
"""
User and group models.

Users are created by administrators (or the setup command) and are read-only to
the credential ceremony and authorization flow. ``credential_uuid`` is the opaque
correlation id carried by passkeys instead of the numeric id.
"""

from datetime import datetime, timezone
from typing import List, Optional
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base

group_memberships = Table(
    "group_memberships",
    Base.metadata,
    Column(
        "group_id",
        Integer,
        ForeignKey("permission_groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    credential_uuid: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4())
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now()
    )

    groups: Mapped[List["Group"]] = relationship(
        "Group", secondary=group_memberships, back_populates="members", lazy="select"
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class Group(Base):
    """Named set of users that overrides can target."""

    __tablename__ = "permission_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_managed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    members: Mapped[List[User]] = relationship(
        User, secondary=group_memberships, back_populates="groups", lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Group {self.slug}>"
