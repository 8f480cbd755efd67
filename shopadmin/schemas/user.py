"""Pydantic schemas for User administration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from shopadmin.models.user import UserRole

_VALID_ROLES = {r.value for r in UserRole}


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


def _check_role(v: str | None) -> str | None:
    if v is not None and v not in _VALID_ROLES:
        raise ValueError(f"Role must be one of: {sorted(_VALID_ROLES)}")
    return v


class UserPublic(BaseModel):
    """Outward identity of the current actor."""

    id: str
    first_name: str
    last_name: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: str | None
    role: str
    is_active: bool
    is_email_verified: bool
    is_mfa_enabled: bool
    is_locked: bool
    require_password_change: bool
    last_login_at: datetime | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str
    password: str
    phone: str | None = None
    role: str = UserRole.USER.value
    permissions: list[str] | None = None

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        return _check_role(v)  # type: ignore[return-value]

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalise_email(v)


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    is_active: bool | None = None
    password: str | None = None
    permissions: list[str] | None = None

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str | None) -> str | None:
        return _check_role(v)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str | None) -> str | None:
        return normalise_email(v) if v is not None else v


class UserRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        return _check_role(v)  # type: ignore[return-value]


class UserPasswordUpdate(BaseModel):
    password: str


class BulkStatusUpdate(BaseModel):
    ids: list[str] = Field(min_length=1)
    is_active: bool


class BulkDelete(BaseModel):
    ids: list[str] = Field(min_length=1)


class UserList(BaseModel):
    users: list[UserRead]
    total: int
    page: int
    total_pages: int


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    super_admins: int
    admins: int
    users: int
