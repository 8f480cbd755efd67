"""
Authentication service — registration, login (with MFA branch), logout,
password change / reset and the super-admin bootstrap.

Login failures are reported with one generic message whatever the
cause; the precise cause goes to the application log and the security
log instead.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from jose import JWTError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.config import settings
from shopadmin.core.exceptions import (BadRequestError, ConflictError,
                                       NotFoundError, UnauthorizedError)
from shopadmin.core.security import (create_access_token, decode_unverified,
                                     ensure_utc, generate_temporary_password,
                                     generate_token_hex, get_password_hash,
                                     hash_token, utcnow,
                                     validate_password_strength,
                                     verify_password)
from shopadmin.core.token_blacklist import token_blacklist
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user import User, UserRole
from shopadmin.schemas.auth import (AuthResponse, LoginRequest,
                                    RegisterRequest)
from shopadmin.schemas.security import SecurityContext
from shopadmin.schemas.user import UserPublic
from shopadmin.services import lockout, mfa, sessions
from shopadmin.services.permissions import grant_all_permissions
from shopadmin.services.security_log import log_security_event

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_LOCKED = (
    "Account is temporarily locked due to too many failed login attempts. "
    "Please try again later."
)
PASSWORD_CHANGE_REQUIRED = "Password change required before signing in"
NO_PASSWORD_CHANGE_PENDING = "No password change is pending for this account"
RESET_REQUESTED = "If the email exists, a password reset link has been sent"


def _mint_token(user: User) -> str:
    return create_access_token(user.id, user.email, user.role)


async def _find_active_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == email, User.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def _store_new_password(db: AsyncSession, user_id: str, new_password: str) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            hashed_password=get_password_hash(new_password),
            password_changed_at=utcnow(),
            require_password_change=False,
            password_reset_token=None,
            password_reset_expires=None,
        )
    )
    await db.commit()


# ── Register / login ────────────────────────────────────────────────
async def register(
    db: AsyncSession,
    profile: RegisterRequest,
    context: SecurityContext | None = None,
) -> AuthResponse:
    existing = await db.execute(select(User.id).where(User.email == profile.email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")
    validate_password_strength(profile.password)

    user = User(
        first_name=profile.first_name,
        last_name=profile.last_name,
        email=profile.email,
        phone=profile.phone,
        hashed_password=get_password_hash(profile.password),
        role=UserRole.USER.value,
        is_active=True,
        password_changed_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)

    session_token = await sessions.create_session(db, user.id, context)
    return AuthResponse(
        access_token=_mint_token(user),
        session_token=session_token,
        user=UserPublic.model_validate(user),
    )


async def _verify_credentials(
    db: AsyncSession,
    email: str,
    password: str,
    context: SecurityContext | None,
) -> User:
    """Lockout check plus password check; every failure counts toward lockout."""
    result = await db.execute(select(User).where(User.email == email))
    candidate = result.scalar_one_or_none()
    if candidate is not None and lockout.is_locked(candidate):
        logger.warning("Login blocked for locked account %s", email)
        await log_security_event(
            db,
            candidate.id,
            SecurityEventType.LOGIN_BLOCKED,
            "Login attempt on locked account",
            SecurityRiskLevel.MEDIUM,
            context,
        )
        raise UnauthorizedError(ACCOUNT_LOCKED)

    user = await _find_active_by_email(db, email)
    if user is None:
        # Inactive accounts still resolve by email (candidate is not None)
        await lockout.record_failed_login(db, email, candidate, context)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not verify_password(password, user.hashed_password):
        await lockout.record_failed_login(db, email, user, context)
        raise UnauthorizedError(INVALID_CREDENTIALS)
    return user


async def login(
    db: AsyncSession,
    credentials: LoginRequest,
    context: SecurityContext | None = None,
) -> AuthResponse:
    user = await _verify_credentials(db, credentials.email, credentials.password, context)

    if user.is_mfa_enabled:
        if not credentials.mfa_code:
            return AuthResponse(requires_mfa=True, message="MFA code required")
        if not await mfa.verify(db, user.id, credentials.mfa_code):
            logger.warning("Invalid MFA code for user %s", user.id)
            await lockout.record_failed_login(db, credentials.email, user, context)
            raise UnauthorizedError(INVALID_CREDENTIALS)

    if user.require_password_change:
        await log_security_event(
            db,
            user.id,
            SecurityEventType.LOGIN_BLOCKED,
            "Login blocked until the password is changed",
            SecurityRiskLevel.LOW,
            context,
        )
        raise UnauthorizedError(PASSWORD_CHANGE_REQUIRED)

    await lockout.record_successful_login(db, user, context)
    session_token = await sessions.create_session(db, user.id, context)
    return AuthResponse(
        access_token=_mint_token(user),
        session_token=session_token,
        user=UserPublic.model_validate(user),
    )


async def logout(
    db: AsyncSession,
    token: str,
    session_token: str | None = None,
    context: SecurityContext | None = None,
) -> None:
    token_blacklist.blacklist(token)

    if session_token:
        await sessions.revoke_session(db, session_token)

    try:
        user_id = decode_unverified(token).get("sub")
    except JWTError as e:
        logger.warning("Could not decode token during logout: %s", e)
        return
    if not user_id:
        return

    await db.execute(
        update(User).where(User.id == user_id).values(last_activity_at=utcnow())
    )
    await db.commit()
    await log_security_event(
        db, user_id, SecurityEventType.LOGOUT, "User logged out", SecurityRiskLevel.LOW, context
    )


# ── Passwords ───────────────────────────────────────────────────────
async def change_password(
    db: AsyncSession,
    user_id: str,
    current_password: str,
    new_password: str,
    context: SecurityContext | None = None,
) -> None:
    """Change the password and revoke every session the user holds."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(current_password, user.hashed_password):
        raise BadRequestError("Current password is incorrect")
    validate_password_strength(new_password)

    await _store_new_password(db, user_id, new_password)
    await sessions.revoke_all_user_sessions(db, user_id)
    await log_security_event(
        db,
        user_id,
        SecurityEventType.PASSWORD_CHANGED,
        "Password changed",
        SecurityRiskLevel.MEDIUM,
        context,
    )


async def complete_required_password_change(
    db: AsyncSession,
    email: str,
    current_password: str,
    new_password: str,
    context: SecurityContext | None = None,
    mfa_code: str | None = None,
) -> None:
    """Let a user blocked by the must-change flag set a new password.

    Only accounts carrying the flag may use this path. When MFA is on, a
    valid code is required as well; a bad code counts as a failed login.
    """
    user = await _verify_credentials(db, email, current_password, context)
    if not user.require_password_change:
        raise BadRequestError(NO_PASSWORD_CHANGE_PENDING)

    if user.is_mfa_enabled:
        if not mfa_code or not await mfa.verify(db, user.id, mfa_code):
            logger.warning("Invalid MFA code on forced password change for user %s", user.id)
            await lockout.record_failed_login(db, email, user, context)
            raise UnauthorizedError(INVALID_CREDENTIALS)

    await change_password(db, user.id, current_password, new_password, context)


async def request_password_reset(
    db: AsyncSession,
    email: str,
    context: SecurityContext | None = None,
) -> str | None:
    """Issue a reset token for *email*.

    Returns the raw token for delivery, or ``None`` when the email did not
    resolve. Callers must answer the client with the same message either way.
    """
    user = await _find_active_by_email(db, email)
    if user is None:
        logger.warning("Password reset requested for unknown email %s", email)
        return None

    token = generate_token_hex(32)
    user.password_reset_token = hash_token(token)
    user.password_reset_expires = utcnow() + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    await db.commit()
    await log_security_event(
        db,
        user.id,
        SecurityEventType.PASSWORD_RESET_REQUESTED,
        "Password reset token generated",
        SecurityRiskLevel.MEDIUM,
        context,
    )
    return token


async def reset_password(
    db: AsyncSession,
    token: str,
    new_password: str,
    context: SecurityContext | None = None,
) -> None:
    validate_password_strength(new_password)

    result = await db.execute(select(User).where(User.password_reset_token == hash_token(token)))
    user = result.scalar_one_or_none()
    expires = ensure_utc(user.password_reset_expires) if user is not None else None
    if user is None or expires is None or expires < utcnow():
        raise BadRequestError("Invalid or expired reset token")

    await _store_new_password(db, user.id, new_password)
    await sessions.revoke_all_user_sessions(db, user.id)
    await log_security_event(
        db,
        user.id,
        SecurityEventType.PASSWORD_RESET_COMPLETED,
        "Password reset completed",
        SecurityRiskLevel.MEDIUM,
        context,
    )


# ── Bootstrap ───────────────────────────────────────────────────────
async def create_admin(
    db: AsyncSession,
    email: str,
    first_name: str = "Super",
    last_name: str = "Admin",
) -> tuple[User, str]:
    """Provision the first super admin with a one-time temporary password."""
    existing = await db.execute(
        select(User.id).where(User.role == UserRole.SUPER_ADMIN.value).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("A super admin already exists")
    taken = await db.execute(select(User.id).where(User.email == email))
    if taken.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")

    temporary_password = generate_temporary_password()
    admin = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        hashed_password=get_password_hash(temporary_password),
        role=UserRole.SUPER_ADMIN.value,
        is_active=True,
        is_email_verified=True,
        require_password_change=True,
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    await grant_all_permissions(db, admin.id)
    logger.info("Super admin %s created", admin.id)
    return admin, temporary_password
