# backend/idbroker/models/overrides.py
"""
Per-client permission and role overrides.

Group-scoped rows carry ``override_priority``; rows are applied in ascending
priority so the highest priority is applied last and wins. User-scoped rows have
no priority and are always applied after every group row.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class GroupPermissionOverride(Base):
    __tablename__ = "group_app_permissions"

    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("permission_groups.id", ondelete="CASCADE"), primary_key=True
    )
    client_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clients.client_id", ondelete="CASCADE"), primary_key=True
    )
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    override_priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserPermissionOverride(Base):
    __tablename__ = "user_app_permissions"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    client_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clients.client_id", ondelete="CASCADE"), primary_key=True
    )
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)


class GroupRoleOverride(Base):
    __tablename__ = "group_app_roles"

    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("permission_groups.id", ondelete="CASCADE"), primary_key=True
    )
    client_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clients.client_id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(128), primary_key=True)
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    override_priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserRoleOverride(Base):
    __tablename__ = "user_app_roles"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    client_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clients.client_id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(128), primary_key=True)
    granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
