"""
User model — credentials, lockout counters, MFA state & role.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from shopadmin.core.security import ensure_utc, utcnow
from shopadmin.db.base import Base


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "user"
    UTILISATEUR = "utilisateur"


class User(Base):
    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(255), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    phone: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=UserRole.USER.value,
        server_default=UserRole.USER.value,
        index=True,
    )  # super_admin | admin | user | utilisateur
    is_active: bool = Column(Boolean, default=True, server_default="true", nullable=False)  # type: ignore[assignment]
    is_email_verified: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]

    # MFA
    mfa_secret: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    is_mfa_enabled: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    backup_codes: list[str] | None = Column(JSON, nullable=True)  # type: ignore[assignment]  # bcrypt hashes

    # Lockout
    failed_login_attempts: int = Column(Integer, default=0, server_default="0", nullable=False)  # type: ignore[assignment]
    locked_until: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    # Password lifecycle
    password_reset_token: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]  # sha256 hex
    password_reset_expires: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    password_changed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    require_password_change: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]

    # Activity
    last_login_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    last_login_ip: str | None = Column(String(45), nullable=True)  # type: ignore[assignment]
    last_login_user_agent: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    last_activity_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_locked(self) -> bool:
        locked_until = ensure_utc(self.locked_until)
        return locked_until is not None and locked_until > utcnow()
