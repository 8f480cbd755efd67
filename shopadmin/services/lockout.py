"""
Account lockout policy.

State is the pair ``(failed_login_attempts, locked_until)`` on the user
row. A lock expires on its own once ``locked_until`` is in the past; an
administrator may also lift it early.

Failed attempts are counted with a read-modify-write on the row, so two
concurrent failures against one account can lose an increment. That is
tolerated for a lockout heuristic. A successful login resets every field
in a single UPDATE.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.config import settings
from shopadmin.core.exceptions import NotFoundError
from shopadmin.core.security import ensure_utc, utcnow
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user import User
from shopadmin.schemas.security import SecurityContext
from shopadmin.services.security_log import log_security_event

logger = logging.getLogger(__name__)


# ── Pure transitions ────────────────────────────────────────────────
def is_locked(user: User, now: datetime | None = None) -> bool:
    locked_until = ensure_utc(user.locked_until)
    return locked_until is not None and locked_until > (now or utcnow())


def register_failure(user: User, now: datetime | None = None) -> bool:
    """Count one failed attempt. Returns ``True`` if this attempt locked the account."""
    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    if user.failed_login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
        user.locked_until = (now or utcnow()) + timedelta(minutes=settings.LOCKOUT_MINUTES)
        return True
    return False


def reset(user: User) -> None:
    user.failed_login_attempts = 0
    user.locked_until = None


# ── Persistence ─────────────────────────────────────────────────────
async def is_account_locked(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    return is_locked(user) if user is not None else False


async def record_failed_login(
    db: AsyncSession,
    email: str,
    user: User | None,
    context: SecurityContext | None = None,
) -> None:
    """Count and log a failed attempt. *user* is ``None`` when *email* did not resolve."""
    if user is None:
        logger.warning("Failed login for unknown email %s", email)
        await log_security_event(
            db,
            None,
            SecurityEventType.LOGIN_FAILED,
            f"Failed login attempt for non-existent email: {email}",
            SecurityRiskLevel.MEDIUM,
            context,
            {"email": email},
        )
        return

    locked = register_failure(user)
    await db.commit()

    if locked:
        logger.warning("Account %s locked after %d failed attempts", user.id, user.failed_login_attempts)
        await log_security_event(
            db,
            user.id,
            SecurityEventType.ACCOUNT_LOCKED,
            f"Account locked after {settings.MAX_LOGIN_ATTEMPTS} failed attempts",
            SecurityRiskLevel.HIGH,
            context,
        )
    else:
        logger.warning(
            "Failed login for user %s (%d/%d)",
            user.id,
            user.failed_login_attempts,
            settings.MAX_LOGIN_ATTEMPTS,
        )
        await log_security_event(
            db,
            user.id,
            SecurityEventType.LOGIN_FAILED,
            f"Failed login attempt ({user.failed_login_attempts}/{settings.MAX_LOGIN_ATTEMPTS})",
            SecurityRiskLevel.MEDIUM,
            context,
        )


async def record_successful_login(
    db: AsyncSession,
    user: User,
    context: SecurityContext | None = None,
) -> None:
    now = utcnow()
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            failed_login_attempts=0,
            locked_until=None,
            last_login_at=now,
            last_activity_at=now,
            last_login_ip=context.ip_address if context else None,
            last_login_user_agent=context.user_agent if context else None,
        )
    )
    await db.commit()
    await log_security_event(
        db,
        user.id,
        SecurityEventType.LOGIN_SUCCESS,
        "Successful login",
        SecurityRiskLevel.LOW,
        context,
    )


async def unlock_account(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    reset(user)
    await db.commit()
    logger.info("Account %s unlocked by administrator", user_id)
    await log_security_event(
        db,
        user_id,
        SecurityEventType.ACCOUNT_UNLOCKED,
        "Account manually unlocked",
        SecurityRiskLevel.LOW,
    )
    return user
