"""
JWT bearer tokens, password hashing (bcrypt) and password strength rules.
"""

from __future__ import annotations

import hashlib
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from shopadmin.core.config import settings
from shopadmin.core.exceptions import BadRequestError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY

PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{};:'\",.<>/?\\|`~"


# ── Time ────────────────────────────────────────────────────────────
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str, rounds: int | None = None) -> str:
    if rounds is None:
        return pwd_context.hash(plain)
    return pwd_context.handler().using(rounds=rounds).hash(plain)


def validate_password_strength(password: str) -> None:
    """Raise ``BadRequestError`` naming the first rule *password* breaks."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise BadRequestError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if not any(c.isupper() for c in password):
        raise BadRequestError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise BadRequestError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise BadRequestError("Password must contain at least one digit")
    if not any(c in PASSWORD_SYMBOLS for c in password):
        raise BadRequestError(
            f"Password must contain at least one special character ({PASSWORD_SYMBOLS})"
        )


def generate_temporary_password(length: int = 16) -> str:
    """Random password that always satisfies the strength rules."""
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice("!@#$%^&*"),
    ]
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


# ── Opaque tokens ───────────────────────────────────────────────────
def generate_token_hex(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ── JWT tokens ──────────────────────────────────────────────────────
def create_access_token(
    subject: str | Any,
    email: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    now = utcnow()
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {
            "sub": str(subject),
            "email": email,
            "role": role,
            "iat": now,
            "exp": expire,
            "jti": uuid.uuid4().hex,
            "type": "access",
        },
        _SECRET,
        algorithm=_ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """Return payload dict if *access* token is valid, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
        if payload.get("type") != "access":
            return None
        return payload
    except JWTError:
        return None


def decode_unverified(token: str) -> dict:
    """Read claims without checking signature or expiry.

    Raises ``JWTError`` when the token is not a well-formed JWT.
    """
    return jwt.get_unverified_claims(token)
