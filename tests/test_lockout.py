"""
Account lockout tests — failed-attempt counting, lock expiry and reset.
"""

from datetime import timedelta

import pyotp
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.config import settings
from shopadmin.core.security import utcnow
from shopadmin.models.security_log import SecurityLog
from shopadmin.models.user import User
from shopadmin.services import auth as auth_service
from shopadmin.services import lockout

from conftest import API, DEFAULT_PASSWORD

WRONG = "Wr0ng!pass"


async def _attempt(client: AsyncClient, email: str, password: str):
    return await client.post(f"{API}/auth/login", json={"email": email, "password": password})


# ── Pure transitions ────────────────────────────────────────────────
def test_register_failure_locks_on_threshold():
    user = User(failed_login_attempts=0, locked_until=None)
    now = utcnow()
    for _ in range(settings.MAX_LOGIN_ATTEMPTS - 1):
        assert lockout.register_failure(user, now) is False
    assert lockout.is_locked(user, now) is False

    assert lockout.register_failure(user, now) is True
    assert user.locked_until == now + timedelta(minutes=settings.LOCKOUT_MINUTES)
    assert lockout.is_locked(user, now) is True
    assert lockout.is_locked(user, now + timedelta(minutes=settings.LOCKOUT_MINUTES + 1)) is False


def test_reset_clears_lock_state():
    now = utcnow()
    user = User(failed_login_attempts=7, locked_until=now + timedelta(minutes=5))
    lockout.reset(user)
    assert user.failed_login_attempts == 0
    assert user.locked_until is None
    assert lockout.is_locked(user, now) is False


# ── Through the login endpoint ──────────────────────────────────────
@pytest.mark.asyncio
async def test_five_failures_lock_the_account(
    async_client: AsyncClient, db_session: AsyncSession, make_user
):
    user = await make_user("lock@example.com")

    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        resp = await _attempt(async_client, "lock@example.com", WRONG)
        assert resp.status_code == 401
        assert resp.json()["detail"] == auth_service.INVALID_CREDENTIALS

    await db_session.refresh(user)
    assert user.failed_login_attempts == settings.MAX_LOGIN_ATTEMPTS
    assert user.locked_until is not None
    assert await lockout.is_account_locked(db_session, "lock@example.com") is True

    # The correct password is refused while the lock holds
    resp = await _attempt(async_client, "lock@example.com", DEFAULT_PASSWORD)
    assert resp.status_code == 401
    assert resp.json()["detail"] == auth_service.ACCOUNT_LOCKED


@pytest.mark.asyncio
async def test_lock_expires_after_lockout_window(
    async_client: AsyncClient, db_session: AsyncSession, make_user, monkeypatch
):
    user = await make_user("expiry@example.com")
    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        await _attempt(async_client, "expiry@example.com", WRONG)

    later = utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES + 1)
    monkeypatch.setattr("shopadmin.services.lockout.utcnow", lambda: later)

    resp = await _attempt(async_client, "expiry@example.com", DEFAULT_PASSWORD)
    assert resp.status_code == 200, resp.text

    await db_session.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.locked_until is None


@pytest.mark.asyncio
async def test_success_resets_failed_attempts(
    async_client: AsyncClient, db_session: AsyncSession, make_user
):
    user = await make_user("partial@example.com")
    for _ in range(settings.MAX_LOGIN_ATTEMPTS - 2):
        await _attempt(async_client, "partial@example.com", WRONG)

    await db_session.refresh(user)
    assert user.failed_login_attempts == settings.MAX_LOGIN_ATTEMPTS - 2

    resp = await _attempt(async_client, "partial@example.com", DEFAULT_PASSWORD)
    assert resp.status_code == 200

    await db_session.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_unknown_email_is_never_locked(db_session: AsyncSession):
    assert await lockout.is_account_locked(db_session, "ghost@example.com") is False


@pytest.mark.asyncio
async def test_unlock_account_lifts_lock(
    async_client: AsyncClient, db_session: AsyncSession, make_user
):
    user = await make_user("unlock@example.com")
    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        await _attempt(async_client, "unlock@example.com", WRONG)

    await db_session.refresh(user)
    assert user.locked_until is not None
    await lockout.unlock_account(db_session, user.id)
    assert await lockout.is_account_locked(db_session, "unlock@example.com") is False

    resp = await _attempt(async_client, "unlock@example.com", DEFAULT_PASSWORD)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_bad_mfa_codes_count_toward_lockout(
    async_client: AsyncClient, db_session: AsyncSession, make_user, auth_headers
):
    await make_user("mfa-lock@example.com")
    headers = await auth_headers("mfa-lock@example.com")
    setup = await async_client.post(f"{API}/auth/mfa/setup", headers=headers)
    secret = setup.json()["secret"]
    enabled = await async_client.post(
        f"{API}/auth/mfa/enable", json={"code": pyotp.TOTP(secret).now()}, headers=headers
    )
    assert enabled.status_code == 200

    payload = {"email": "mfa-lock@example.com", "password": DEFAULT_PASSWORD, "mfa_code": "abcdef"}
    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        resp = await async_client.post(f"{API}/auth/login", json=payload)
        assert resp.status_code == 401
        assert resp.json()["detail"] == auth_service.INVALID_CREDENTIALS

    assert await lockout.is_account_locked(db_session, "mfa-lock@example.com") is True

    resp = await async_client.post(
        f"{API}/auth/login",
        json={**payload, "mfa_code": pyotp.TOTP(secret).now()},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == auth_service.ACCOUNT_LOCKED


@pytest.mark.asyncio
async def test_inactive_account_failure_is_attributed(
    async_client: AsyncClient, db_session: AsyncSession, make_user
):
    user = await make_user("dormant@example.com", is_active=False)
    resp = await _attempt(async_client, "dormant@example.com", DEFAULT_PASSWORD)
    assert resp.status_code == 401
    assert resp.json()["detail"] == auth_service.INVALID_CREDENTIALS

    result = await db_session.execute(
        select(SecurityLog).where(SecurityLog.event_type == "login_failed")
    )
    entries = result.scalars().all()
    assert [e.user_id for e in entries] == [user.id]
    assert "non-existent" not in entries[0].description
