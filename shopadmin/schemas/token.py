"""Pydantic schemas for JWT tokens."""

from __future__ import annotations

from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str | None = None
    email: str | None = None
    role: str | None = None
    exp: int | None = None
    type: str | None = None
