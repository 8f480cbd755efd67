"""
UserSession model — server-tracked login instances.

Rows are deactivated on logout / revocation and kept for audit.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text

from shopadmin.core.security import ensure_utc, utcnow
from shopadmin.db.base import Base


class UserSession(Base):
    __tablename__ = "user_sessions"
    __table_args__ = (Index("ix_user_sessions_user_active", "user_id", "is_active"),)

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    session_token: str = Column(String(255), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    ip_address: str | None = Column(String(45), nullable=True)  # type: ignore[assignment]
    user_agent: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    location: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    device: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true", nullable=False)  # type: ignore[assignment]
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
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
    def is_expired(self) -> bool:
        return ensure_utc(self.expires_at) < utcnow()

    @property
    def is_valid(self) -> bool:
        return self.is_active and not self.is_expired
