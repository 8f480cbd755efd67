"""
Security event log — append-only audit trail with a risk level per entry.

Writes are best effort: a failing insert is rolled back and logged so
the authentication flow that triggered it still completes.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.exceptions import NotFoundError
from shopadmin.core.security import utcnow
from shopadmin.models.security_log import (SecurityEventType, SecurityLog,
                                           SecurityRiskLevel)
from shopadmin.models.user import User
from shopadmin.models.user_session import UserSession
from shopadmin.schemas.security import SecurityContext, SecurityLogList, SecurityStats

logger = logging.getLogger(__name__)


async def log_security_event(
    db: AsyncSession,
    user_id: str | None,
    event_type: SecurityEventType,
    description: str,
    risk_level: SecurityRiskLevel = SecurityRiskLevel.LOW,
    context: SecurityContext | None = None,
    metadata: dict[str, Any] | None = None,
) -> SecurityLog | None:
    entry = SecurityLog(
        user_id=user_id,
        event_type=event_type.value,
        risk_level=risk_level.value,
        description=description[:255],
        ip_address=context.ip_address if context else None,
        user_agent=context.user_agent if context else None,
        location=context.location if context else None,
        details=metadata,
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError:
        logger.exception(
            "Failed to write security event %s for user %s", event_type.value, user_id
        )
        await db.rollback()
        return None
    return entry


async def list_security_logs(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    user_id: str | None = None,
    event_type: SecurityEventType | None = None,
    risk_level: SecurityRiskLevel | None = None,
) -> SecurityLogList:
    query = select(SecurityLog)
    count_query = select(func.count(SecurityLog.id))
    if user_id:
        query = query.where(SecurityLog.user_id == user_id)
        count_query = count_query.where(SecurityLog.user_id == user_id)
    if event_type:
        query = query.where(SecurityLog.event_type == event_type.value)
        count_query = count_query.where(SecurityLog.event_type == event_type.value)
    if risk_level:
        query = query.where(SecurityLog.risk_level == risk_level.value)
        count_query = count_query.where(SecurityLog.risk_level == risk_level.value)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(SecurityLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return SecurityLogList(
        logs=list(result.scalars().all()),
        total=total,
        page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
    )


async def resolve_security_log(db: AsyncSession, log_id: str, resolution: str) -> SecurityLog:
    entry = await db.get(SecurityLog, log_id)
    if entry is None:
        raise NotFoundError("Security log entry not found")
    entry.is_resolved = True
    entry.resolution = resolution
    await db.commit()
    await db.refresh(entry)
    return entry


async def security_stats(db: AsyncSession) -> SecurityStats:
    now = utcnow()
    total_events = (await db.execute(select(func.count(SecurityLog.id)))).scalar_one()
    high_risk = (
        await db.execute(
            select(func.count(SecurityLog.id)).where(
                SecurityLog.risk_level.in_(
                    [SecurityRiskLevel.HIGH.value, SecurityRiskLevel.CRITICAL.value]
                )
            )
        )
    ).scalar_one()
    locked = (
        await db.execute(select(func.count(User.id)).where(User.locked_until > now))
    ).scalar_one()
    active_sessions = (
        await db.execute(
            select(func.count(UserSession.id)).where(
                UserSession.is_active.is_(True), UserSession.expires_at > now
            )
        )
    ).scalar_one()
    return SecurityStats(
        total_events=total_events,
        high_risk_events=high_risk,
        locked_accounts=locked,
        active_sessions=active_sessions,
    )
