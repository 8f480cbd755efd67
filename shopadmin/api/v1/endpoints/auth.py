"""
Auth endpoints — register, login, logout, password lifecycle, sessions
and the one-time super-admin bootstrap.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.api.v1.deps import (get_bearer_token, get_current_active_user,
                                   get_db, get_security_context)
from shopadmin.core.config import settings
from shopadmin.core.rate_limit import limiter
from shopadmin.models.user import User
from shopadmin.schemas.auth import (AuthResponse, ChangePasswordRequest,
                                    CreateAdminRequest, CreateAdminResponse,
                                    ForgotPasswordRequest, LoginRequest,
                                    MessageResponse, RegisterRequest,
                                    RequiredPasswordChangeRequest,
                                    ResetPasswordRequest, SessionRead,
                                    ValidateResponse)
from shopadmin.schemas.security import SecurityContext
from shopadmin.schemas.user import UserPublic
from shopadmin.services import auth as auth_service
from shopadmin.services import sessions

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> AuthResponse:
    """Create a standard user account and sign it in."""
    return await auth_service.register(db, body, context)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> AuthResponse:
    """Authenticate with email/password (+ MFA code when enabled)."""
    return await auth_service.login(db, body, context)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str | None = Depends(get_bearer_token),
    _user: User = Depends(get_current_active_user),
    x_session_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> MessageResponse:
    """Revoke the bearer token and, if supplied, the server-side session."""
    await auth_service.logout(db, token, x_session_token, context)  # type: ignore[arg-type]
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=UserPublic)
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user


@router.get("/validate", response_model=ValidateResponse)
async def validate_token(
    current_user: User = Depends(get_current_active_user),
) -> ValidateResponse:
    return ValidateResponse(valid=True, user=UserPublic.model_validate(current_user))


# ── Passwords ───────────────────────────────────────────────────────
@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> MessageResponse:
    """Change password; every session is revoked and must sign in again."""
    await auth_service.change_password(
        db, current_user.id, body.current_password, body.new_password, context
    )
    return MessageResponse(message="Password changed. Please sign in again.")


@router.post("/password/required-change", response_model=MessageResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def required_password_change(
    request: Request,
    body: RequiredPasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> MessageResponse:
    await auth_service.complete_required_password_change(
        db,
        body.email,
        body.current_password,
        body.new_password,
        context,
        mfa_code=body.mfa_code,
    )
    return MessageResponse(message="Password changed. You can now sign in.")


@router.post("/password/forgot", response_model=MessageResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> MessageResponse:
    """Always answers with the same message, whether or not the email exists."""
    token = await auth_service.request_password_reset(db, body.email, context)
    if token is not None:
        # Delivery (email) is handled outside this service.
        logger.info("Password reset token issued for %s", body.email)
    return MessageResponse(message=auth_service.RESET_REQUESTED)


@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    context: SecurityContext = Depends(get_security_context),
) -> MessageResponse:
    await auth_service.reset_password(db, body.token, body.new_password, context)
    return MessageResponse(message="Password has been reset. Please sign in again.")


# ── Sessions ────────────────────────────────────────────────────────
@router.get("/sessions", response_model=list[SessionRead])
async def list_my_sessions(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await sessions.get_user_active_sessions(db, current_user.id)


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def revoke_my_session(
    session_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await sessions.revoke_session_by_id(db, current_user.id, session_id)
    return MessageResponse(message="Session revoked")


# ── Bootstrap ───────────────────────────────────────────────────────
@router.post("/create-admin", response_model=CreateAdminResponse, status_code=201)
async def create_admin(
    body: CreateAdminRequest,
    db: AsyncSession = Depends(get_db),
) -> CreateAdminResponse:
    """Provision the first super admin. Refused once one exists."""
    admin, temporary_password = await auth_service.create_admin(
        db, body.email, body.first_name, body.last_name
    )
    return CreateAdminResponse(
        message="Admin user created. Change the temporary password on first sign-in.",
        admin=UserPublic.model_validate(admin),
        temporary_password=temporary_password,
    )
