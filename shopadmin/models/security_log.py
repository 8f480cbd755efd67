"""
SecurityLog model — append-only audit trail of authentication events.

Only the resolution fields are ever updated, by an administrator.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text

from shopadmin.db.base import Base


class SecurityEventType(str, Enum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED = "login_blocked"
    LOGOUT = "logout"
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    MFA_BACKUP_USED = "mfa_backup_used"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    EMAIL_VERIFIED = "email_verified"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    PERMISSION_CHANGED = "permission_changed"


class SecurityRiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityLog(Base):
    __tablename__ = "security_logs"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    user_id: str | None = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    event_type: str = Column(String(40), nullable=False, index=True)  # type: ignore[assignment]
    risk_level: str = Column(  # type: ignore[assignment]
        String(10),
        nullable=False,
        default=SecurityRiskLevel.LOW.value,
        index=True,
    )
    description: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    ip_address: str | None = Column(String(45), nullable=True)  # type: ignore[assignment]
    user_agent: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    location: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    details: dict | None = Column("metadata", JSON, nullable=True)  # type: ignore[assignment]
    is_resolved: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    resolution: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
