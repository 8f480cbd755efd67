"""
FastAPI dependencies — database session, request context and auth guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.exceptions import ForbiddenError
from shopadmin.core.security import decode_access_token
from shopadmin.core.token_blacklist import token_blacklist
from shopadmin.db.session import async_session_factory
from shopadmin.models.user import User
from shopadmin.models.user_session import UserSession
from shopadmin.schemas.security import SecurityContext
from shopadmin.schemas.token import TokenPayload
from shopadmin.services import sessions
from shopadmin.services.permissions import RequiredPermission, authorize


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Request context ─────────────────────────────────────────────────
def get_security_context(request: Request) -> SecurityContext:
    return SecurityContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        location=request.headers.get("x-client-location"),
        device=request.headers.get("x-client-device"),
    )


def get_bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    """Raw bearer token, or ``None`` when the header is absent or malformed."""
    return token_blacklist.extract_token(authorization)


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: str | None = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate the bearer token (signature, expiry, revocation) and load its user."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exc

    if token_blacklist.is_blacklisted(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exc

    claims = TokenPayload.model_validate(payload)
    if claims.sub is None:
        raise credentials_exc

    user = await db.get(User, claims.sub)
    if user is None:
        raise credentials_exc
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user account")
    return current_user


async def get_current_session(
    current_user: User = Depends(get_current_active_user),
    x_session_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> UserSession:
    """Require a live server-side session owned by the bearer's user."""
    session = await sessions.validate_session(db, x_session_token) if x_session_token else None
    if session is None or session.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session is invalid or has expired",
        )
    return session


def require_permissions(*required: RequiredPermission) -> Callable:
    """Build a dependency that allows the request only if the user holds *required*."""

    async def _guard(
        current_user: User = Depends(get_current_active_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if not await authorize(db, current_user, required):
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return _guard
