"""
Permission catalogue & per-user grants.

A grant row carries an explicit ``is_granted`` flag; a row may exist in
the revoked state. At most one row exists per (user, permission).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, String, Text,
                        UniqueConstraint)
from sqlalchemy.orm import relationship

from shopadmin.db.base import Base


class PermissionResource(str, Enum):
    DASHBOARD = "dashboard"
    PRODUCTS = "products"
    CATEGORIES = "categories"
    USERS = "users"
    ORDERS = "orders"
    SETTINGS = "settings"
    NEWS = "news"
    PARTNERS = "partners"
    TESTIMONIALS = "testimonials"
    CONTACT_MESSAGES = "contact_messages"
    AUTH = "auth"
    PERMISSIONS = "permissions"


class PermissionAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permission_resource_action"),
    )

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    resource: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    action: str = Column(String(10), nullable=False)  # type: ignore[assignment]
    name: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class UserPermission(Base):
    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),
    )

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    user_id: str = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission_id: str = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_granted: bool = Column(Boolean, default=True, server_default="true", nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    permission = relationship("Permission", lazy="joined")
