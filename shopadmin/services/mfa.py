"""
Multi-factor authentication — TOTP codes plus single-use backup codes.

Setup stores the shared secret and the bcrypt hashes of freshly minted
backup codes; the plaintext codes are returned once and never stored.
MFA is enforced only after ``enable`` confirms a first code.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import secrets
from io import BytesIO

import pyotp
import qrcode
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.config import settings
from shopadmin.core.exceptions import BadRequestError, NotFoundError
from shopadmin.core.security import get_password_hash, verify_password
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user import User
from shopadmin.schemas.auth import MfaSetupResponse, MfaStatusResponse
from shopadmin.services.security_log import log_security_event

logger = logging.getLogger(__name__)

BACKUP_CODE_BYTES = 4
BACKUP_CODE_LENGTH = BACKUP_CODE_BYTES * 2


def generate_backup_codes(count: int | None = None) -> list[str]:
    count = settings.MFA_BACKUP_CODE_COUNT if count is None else count
    return [secrets.token_hex(BACKUP_CODE_BYTES).upper() for _ in range(count)]


def render_qr_data_url(data: str) -> str:
    img = qrcode.make(data)
    buf = BytesIO()
    img.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _verify_totp(secret: str, code: str) -> bool:
    return pyotp.TOTP(secret).verify(code, valid_window=settings.MFA_VALID_WINDOW)


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def setup(db: AsyncSession, user_id: str) -> MfaSetupResponse:
    user = await _get_user(db, user_id)
    if user.is_mfa_enabled:
        raise BadRequestError("MFA is already enabled; disable it before setting it up again")

    secret = pyotp.random_base32(length=32)
    otpauth_url = pyotp.TOTP(secret).provisioning_uri(
        name=user.email, issuer_name=settings.MFA_ISSUER
    )
    # PNG rendering is CPU-bound; keep it off the event loop.
    qr_code_url = await asyncio.to_thread(render_qr_data_url, otpauth_url)

    backup_codes = generate_backup_codes()
    user.mfa_secret = secret
    user.backup_codes = [
        get_password_hash(code, rounds=settings.BACKUP_CODE_ROUNDS) for code in backup_codes
    ]
    await db.commit()

    await log_security_event(
        db,
        user.id,
        SecurityEventType.MFA_ENABLED,
        "MFA setup initiated",
        SecurityRiskLevel.LOW,
    )
    return MfaSetupResponse(secret=secret, qr_code_url=qr_code_url, backup_codes=backup_codes)


async def enable(db: AsyncSession, user_id: str, code: str) -> bool:
    user = await _get_user(db, user_id)
    if not user.mfa_secret or not _verify_totp(user.mfa_secret, code):
        return False

    user.is_mfa_enabled = True
    await db.commit()
    await log_security_event(
        db,
        user.id,
        SecurityEventType.MFA_ENABLED,
        "MFA successfully enabled",
        SecurityRiskLevel.LOW,
    )
    return True


async def verify(db: AsyncSession, user_id: str, code: str) -> bool:
    """Check a login-time code. A backup-code match consumes that code."""
    user = await db.get(User, user_id)
    if user is None or not user.is_mfa_enabled or not user.mfa_secret:
        return False

    if len(code) == BACKUP_CODE_LENGTH and user.backup_codes:
        candidate = code.upper()
        for index, hashed in enumerate(user.backup_codes):
            if verify_password(candidate, hashed):
                remaining = list(user.backup_codes)
                del remaining[index]
                user.backup_codes = remaining
                await db.commit()
                logger.info("Backup code used by user %s (%d left)", user.id, len(remaining))
                await log_security_event(
                    db,
                    user.id,
                    SecurityEventType.MFA_BACKUP_USED,
                    "Backup code used for authentication",
                    SecurityRiskLevel.MEDIUM,
                )
                return True

    return _verify_totp(user.mfa_secret, code)


async def disable(db: AsyncSession, user_id: str, password: str) -> bool:
    user = await db.get(User, user_id)
    if user is None or not verify_password(password, user.hashed_password):
        return False

    user.is_mfa_enabled = False
    user.mfa_secret = None
    user.backup_codes = None
    await db.commit()
    await log_security_event(
        db,
        user.id,
        SecurityEventType.MFA_DISABLED,
        "MFA disabled",
        SecurityRiskLevel.MEDIUM,
    )
    return True


async def status(db: AsyncSession, user_id: str) -> MfaStatusResponse:
    user = await _get_user(db, user_id)
    return MfaStatusResponse(
        enabled=user.is_mfa_enabled,
        backup_codes_remaining=len(user.backup_codes or []),
    )
