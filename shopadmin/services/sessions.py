"""
Server-side session registry.

A session token is an opaque random credential tracked independently of
the bearer JWT, so a session can be revoked without touching the token's
signature. Sessions are deactivated, never deleted.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.config import settings
from shopadmin.core.exceptions import NotFoundError
from shopadmin.core.security import generate_token_hex, utcnow
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user_session import UserSession
from shopadmin.schemas.security import SecurityContext
from shopadmin.services.security_log import log_security_event

logger = logging.getLogger(__name__)


async def create_session(
    db: AsyncSession,
    user_id: str,
    context: SecurityContext | None = None,
) -> str:
    now = utcnow()
    token = generate_token_hex(32)
    context = context or SecurityContext()
    db.add(
        UserSession(
            user_id=user_id,
            session_token=token,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            location=context.location,
            device=context.device,
            expires_at=now + timedelta(hours=settings.SESSION_HOURS),
            last_activity_at=now,
        )
    )
    await db.commit()
    return token


async def validate_session(db: AsyncSession, session_token: str) -> UserSession | None:
    """Return the active session for *session_token*, refreshing its activity."""
    result = await db.execute(
        select(UserSession).where(
            UserSession.session_token == session_token,
            UserSession.is_active.is_(True),
        )
    )
    session = result.scalar_one_or_none()
    if session is None:
        return None

    if session.is_expired:
        session.is_active = False
        await db.commit()
        logger.info("Session %s expired and was deactivated", session.id)
        return None

    session.last_activity_at = utcnow()
    await db.commit()
    return session


async def revoke_session(db: AsyncSession, session_token: str) -> None:
    await db.execute(
        update(UserSession)
        .where(UserSession.session_token == session_token)
        .values(is_active=False)
    )
    await db.commit()


async def revoke_session_by_id(db: AsyncSession, user_id: str, session_id: str) -> None:
    session = await db.get(UserSession, session_id)
    if session is None or session.user_id != user_id:
        raise NotFoundError("Session not found")
    session.is_active = False
    await db.commit()


async def revoke_all_user_sessions(db: AsyncSession, user_id: str) -> None:
    await db.execute(
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
        .values(is_active=False)
    )
    await db.commit()
    await log_security_event(
        db,
        user_id,
        SecurityEventType.LOGOUT,
        "All sessions revoked",
        SecurityRiskLevel.LOW,
    )


async def get_user_active_sessions(db: AsyncSession, user_id: str) -> list[UserSession]:
    result = await db.execute(
        select(UserSession)
        .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
        .order_by(UserSession.last_activity_at.desc())
    )
    return list(result.scalars().all())
