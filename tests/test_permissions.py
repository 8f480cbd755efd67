"""
Authorization tests — catalogue, grant replacement and the role shortcut.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.exceptions import BadRequestError, NotFoundError
from shopadmin.models.permission import Permission
from shopadmin.services import permissions as permission_service

from conftest import API


async def _permission_ids(db: AsyncSession, *pairs: tuple[str, str]) -> list[str]:
    ids = []
    for resource, action in pairs:
        result = await db.execute(
            select(Permission.id).where(
                Permission.resource == resource, Permission.action == action
            )
        )
        ids.append(result.scalar_one())
    return ids


# ── Catalogue ───────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session: AsyncSession):
    catalogue = await permission_service.list_permissions(db_session)
    assert len(catalogue) == len(permission_service.PERMISSION_CATALOG)
    assert await permission_service.seed_permissions(db_session) == 0


# ── Decision ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_no_requirements_always_allowed(db_session: AsyncSession, make_user):
    user = await make_user("open@example.com")
    assert await permission_service.authorize(db_session, user, []) is True
    assert await permission_service.authorize(db_session, None, []) is True


@pytest.mark.asyncio
async def test_anonymous_denied_when_requirements_exist(db_session: AsyncSession):
    assert await permission_service.authorize(db_session, None, [("products", "view")]) is False


@pytest.mark.asyncio
async def test_super_admin_bypasses_grants(db_session: AsyncSession, make_user):
    root = await make_user("root@example.com", role="super_admin")
    assert await permission_service.authorize(
        db_session, root, [("products", "create"), ("users", "delete")]
    ) is True


@pytest.mark.asyncio
async def test_admin_without_grants_is_denied(db_session: AsyncSession, make_user):
    admin = await make_user("admin@example.com", role="admin")
    assert await permission_service.authorize(db_session, admin, [("products", "create")]) is False


@pytest.mark.asyncio
async def test_all_required_pairs_must_be_granted(db_session: AsyncSession, make_user):
    admin = await make_user("partial@example.com", role="admin")
    ids = await _permission_ids(db_session, ("products", "view"))
    await permission_service.update_permissions(db_session, admin.id, ids)

    assert await permission_service.authorize(db_session, admin, [("products", "view")]) is True
    assert await permission_service.authorize(
        db_session, admin, [("products", "view"), ("products", "delete")]
    ) is False


# ── Grant replacement ───────────────────────────────────────────────
@pytest.mark.asyncio
async def test_update_permissions_replaces_whole_set(db_session: AsyncSession, make_user):
    user = await make_user("replace@example.com", role="utilisateur")
    first = await _permission_ids(db_session, ("orders", "view"), ("orders", "update"))
    grants = await permission_service.update_permissions(db_session, user.id, first)
    assert {g.permission_id for g in grants} == set(first)

    second = await _permission_ids(db_session, ("news", "view"))
    grants = await permission_service.update_permissions(db_session, user.id, second + second)
    assert [g.permission_id for g in grants] == second
    assert await permission_service.has_permission(db_session, user.id, "orders", "view") is False


@pytest.mark.asyncio
async def test_empty_update_revokes_everything(db_session: AsyncSession, make_user):
    user = await make_user("revoke@example.com", role="admin")
    ids = await _permission_ids(db_session, ("products", "view"), ("users", "view"))
    await permission_service.update_permissions(db_session, user.id, ids)

    assert await permission_service.update_permissions(db_session, user.id, []) == []
    assert await permission_service.get_user_permissions(db_session, user.id) == []
    assert await permission_service.authorize(db_session, user, [("products", "view")]) is False


@pytest.mark.asyncio
async def test_update_rejects_unknown_permission(db_session: AsyncSession, make_user):
    user = await make_user("unknown-perm@example.com")
    with pytest.raises(BadRequestError):
        await permission_service.update_permissions(db_session, user.id, ["nope"])
    with pytest.raises(NotFoundError):
        await permission_service.update_permissions(db_session, "missing-user", [])


# ── Route guards ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_route_guard_uses_grants(
    async_client: AsyncClient, db_session: AsyncSession, make_user, auth_headers
):
    admin = await make_user("guarded@example.com", role="admin")
    await make_user("root@example.com", role="super_admin")
    admin_headers = await auth_headers("guarded@example.com")
    root_headers = await auth_headers("root@example.com")

    denied = await async_client.get(f"{API}/users", headers=admin_headers)
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Insufficient permissions"

    assert (await async_client.get(f"{API}/users", headers=root_headers)).status_code == 200

    catalogue = await async_client.get(f"{API}/users/permissions/all", headers=root_headers)
    view_users = next(
        p["id"] for p in catalogue.json() if p["resource"] == "users" and p["action"] == "view"
    )
    granted = await async_client.patch(
        f"{API}/users/{admin.id}/permissions",
        json={"permissions": [view_users]},
        headers=root_headers,
    )
    assert granted.status_code == 200, granted.text
    assert granted.json()[0]["permission"]["resource"] == "users"

    allowed = await async_client.get(f"{API}/users", headers=admin_headers)
    assert allowed.status_code == 200

    # View does not imply delete
    forbidden = await async_client.delete(f"{API}/users/{admin.id}", headers=admin_headers)
    assert forbidden.status_code == 403
