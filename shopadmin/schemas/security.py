"""Pydantic schemas for request context, security logs & permissions."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SecurityContext(BaseModel):
    """Client metadata attached to sessions and security log entries."""

    ip_address: str | None = None
    user_agent: str | None = None
    location: str | None = None
    device: str | None = None


# ── Security log ────────────────────────────────────────────────────
class SecurityLogRead(BaseModel):
    id: str
    user_id: str | None
    event_type: str
    risk_level: str
    description: str
    ip_address: str | None
    user_agent: str | None
    location: str | None
    details: dict[str, Any] | None = Field(default=None, serialization_alias="metadata")
    is_resolved: bool
    resolution: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class SecurityLogList(BaseModel):
    logs: list[SecurityLogRead]
    total: int
    page: int
    total_pages: int


class ResolveLogRequest(BaseModel):
    resolution: str = Field(min_length=1, max_length=2000)


class SecurityStats(BaseModel):
    total_events: int
    high_risk_events: int
    locked_accounts: int
    active_sessions: int


class LockStatus(BaseModel):
    email: str
    locked: bool


# ── Permissions ─────────────────────────────────────────────────────
class PermissionRead(BaseModel):
    id: str
    resource: str
    action: str
    name: str
    description: str | None

    model_config = {"from_attributes": True}


class UserPermissionRead(BaseModel):
    id: str
    permission_id: str
    is_granted: bool
    permission: PermissionRead

    model_config = {"from_attributes": True}


class UpdatePermissionsRequest(BaseModel):
    permissions: list[str]
