"""Pydantic schemas for authentication, sessions & MFA."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from shopadmin.schemas.user import UserPublic, normalise_email


# ── Register / login ────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str
    password: str
    phone: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class LoginRequest(BaseModel):
    email: str
    password: str
    mfa_code: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("mfa_code")
    @classmethod
    def _strip_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class AuthResponse(BaseModel):
    access_token: str | None = None
    token_type: str = "bearer"
    session_token: str | None = None
    user: UserPublic | None = None
    requires_mfa: bool = False
    message: str | None = None


class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ValidateResponse(BaseModel):
    valid: bool
    user: UserPublic


# ── Passwords ───────────────────────────────────────────────────────
class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class RequiredPasswordChangeRequest(BaseModel):
    email: str
    current_password: str
    new_password: str
    mfa_code: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str


# ── Admin bootstrap ─────────────────────────────────────────────────
class CreateAdminRequest(BaseModel):
    email: str
    first_name: str = "Super"
    last_name: str = "Admin"

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class CreateAdminResponse(BaseModel):
    message: str
    admin: UserPublic
    temporary_password: str


# ── Sessions ────────────────────────────────────────────────────────
class SessionRead(BaseModel):
    id: str
    ip_address: str | None
    user_agent: str | None
    location: str | None
    device: str | None
    is_active: bool
    expires_at: datetime
    last_activity_at: datetime | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


# ── MFA ─────────────────────────────────────────────────────────────
class MfaSetupResponse(BaseModel):
    secret: str
    qr_code_url: str
    backup_codes: list[str]


class MfaCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=16)

    @field_validator("code")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class MfaDisableRequest(BaseModel):
    password: str


class MfaStatusResponse(BaseModel):
    enabled: bool
    backup_codes_remaining: int
