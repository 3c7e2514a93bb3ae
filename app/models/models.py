from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, PrimaryKeyConstraint, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP

from app.models.base import Base


class UUIDMixin:
    id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))


class Warehouse(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "warehouses"

    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Role(UUIDMixin, Base):
    __tablename__ = "roles"

    role_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    role_name: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_manage_roles: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_manage_cards: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_manage_entries: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    permissions: Mapped[list["RolePermission"]] = relationship(back_populates="role", lazy="selectin")
    warehouse_rules: Mapped[list["RoleWarehouseRule"]] = relationship(back_populates="role", lazy="selectin")


class Permission(Base):
    __tablename__ = "permissions"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    description: Mapped[Optional[str]] = mapped_column(Text)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (PrimaryKeyConstraint("role_id", "permission_key"),)

    role_id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("roles.id"), nullable=False)
    permission_key: Mapped[str] = mapped_column(String(128), ForeignKey("permissions.key"), nullable=False)

    role: Mapped[Role] = relationship(back_populates="permissions")


class RoleWarehouseRule(UUIDMixin, Base):
    __tablename__ = "role_warehouse_rules"

    role_id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("roles.id"), nullable=False)
    # Warehouse code, denormalized next to the id
    warehouse: Mapped[Optional[str]] = mapped_column(String(32))
    warehouse_id: Mapped[Optional[uuid.UUID]] = mapped_column(PGUUID(as_uuid=True), ForeignKey("warehouses.id"))

    role: Mapped[Role] = relationship(back_populates="warehouse_rules")


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    auth_id: Mapped[Optional[uuid.UUID]] = mapped_column(PGUUID(as_uuid=True), unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    role_id: Mapped[Optional[uuid.UUID]] = mapped_column(PGUUID(as_uuid=True), ForeignKey("roles.id"))
    role_code: Mapped[Optional[str]] = mapped_column(String(64))
    role_family: Mapped[Optional[str]] = mapped_column(String(64))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
