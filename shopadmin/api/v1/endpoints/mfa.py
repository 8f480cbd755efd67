"""
MFA endpoints. Changing MFA state needs both the bearer token and a live
server-side session (``X-Session-Token``).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.api.v1.deps import get_current_active_user, get_current_session, get_db
from shopadmin.core.exceptions import BadRequestError
from shopadmin.models.user import User
from shopadmin.schemas.auth import (MessageResponse, MfaCodeRequest,
                                    MfaDisableRequest, MfaSetupResponse,
                                    MfaStatusResponse)
from shopadmin.services import mfa

router = APIRouter(
    prefix="/auth/mfa",
    tags=["mfa"],
    dependencies=[Depends(get_current_session)],
)


@router.get("/status", response_model=MfaStatusResponse)
async def mfa_status(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MfaStatusResponse:
    return await mfa.status(db, current_user.id)


@router.post("/setup", response_model=MfaSetupResponse)
async def mfa_setup(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MfaSetupResponse:
    """Generate a secret, QR code and backup codes. Shown once."""
    return await mfa.setup(db, current_user.id)


@router.post("/enable", response_model=MessageResponse)
async def mfa_enable(
    body: MfaCodeRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if not await mfa.enable(db, current_user.id, body.code):
        raise BadRequestError("Invalid MFA code")
    return MessageResponse(message="MFA enabled")


@router.post("/disable", response_model=MessageResponse)
async def mfa_disable(
    body: MfaDisableRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if not await mfa.disable(db, current_user.id, body.password):
        raise BadRequestError("Invalid password")
    return MessageResponse(message="MFA disabled")
