"""
Security administration — audit log, statistics, lockout and sessions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.api.v1.deps import get_db, require_permissions
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user import User
from shopadmin.schemas.auth import MessageResponse, SessionRead
from shopadmin.schemas.security import (LockStatus, ResolveLogRequest,
                                        SecurityLogList, SecurityLogRead,
                                        SecurityStats)
from shopadmin.services import lockout, sessions
from shopadmin.services import security_log as security_log_service
from shopadmin.services.users import get_user

router = APIRouter(prefix="/security", tags=["security"])

can_view = require_permissions(("auth", "view"))
can_manage = require_permissions(("auth", "update"))


@router.get("/logs", response_model=SecurityLogList)
async def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user_id: str | None = None,
    event_type: SecurityEventType | None = None,
    risk_level: SecurityRiskLevel | None = None,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> SecurityLogList:
    return await security_log_service.list_security_logs(
        db, page, limit, user_id, event_type, risk_level
    )


@router.patch("/logs/{log_id}/resolve", response_model=SecurityLogRead)
async def resolve_log(
    log_id: str,
    body: ResolveLogRequest,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_manage),
):
    return await security_log_service.resolve_security_log(db, log_id, body.resolution)


@router.get("/stats", response_model=SecurityStats)
async def stats(
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> SecurityStats:
    return await security_log_service.security_stats(db)


@router.get("/lock-status", response_model=LockStatus)
async def lock_status(
    email: str = Query(..., min_length=3),
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> LockStatus:
    email = email.strip().lower()
    return LockStatus(email=email, locked=await lockout.is_account_locked(db, email))


@router.post("/users/{user_id}/unlock", response_model=MessageResponse)
async def unlock_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_manage),
) -> MessageResponse:
    await lockout.unlock_account(db, user_id)
    return MessageResponse(message="Account unlocked")


@router.get("/users/{user_id}/sessions", response_model=list[SessionRead])
async def user_sessions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
):
    await get_user(db, user_id)
    return await sessions.get_user_active_sessions(db, user_id)


@router.post("/users/{user_id}/sessions/revoke", response_model=MessageResponse)
async def revoke_user_sessions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_manage),
) -> MessageResponse:
    await get_user(db, user_id)
    await sessions.revoke_all_user_sessions(db, user_id)
    return MessageResponse(message="All sessions revoked")
