"""
Permission catalogue, per-user grants and the authorization decision.

Role shortcut: ``super_admin`` bypasses grant checks entirely. Every
other role, ``admin`` included, needs an explicit granted row for each
required (resource, action) pair.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.exceptions import BadRequestError, NotFoundError
from shopadmin.models.permission import (Permission, PermissionAction,
                                         PermissionResource, UserPermission)
from shopadmin.models.security_log import SecurityEventType, SecurityRiskLevel
from shopadmin.models.user import User, UserRole
from shopadmin.services.security_log import log_security_event

logger = logging.getLogger(__name__)

RequiredPermission = tuple[str, str]

_R = PermissionResource
_A = PermissionAction

PERMISSION_CATALOG: list[tuple[PermissionResource, PermissionAction, str, str]] = [
    (_R.DASHBOARD, _A.VIEW, "View dashboard", "Access the main dashboard"),
    (_R.PRODUCTS, _A.VIEW, "View products", "List and inspect products"),
    (_R.PRODUCTS, _A.CREATE, "Create products", "Add new products"),
    (_R.PRODUCTS, _A.UPDATE, "Update products", "Edit existing products"),
    (_R.PRODUCTS, _A.DELETE, "Delete products", "Remove products"),
    (_R.CATEGORIES, _A.VIEW, "View categories", "List and inspect categories"),
    (_R.CATEGORIES, _A.CREATE, "Create categories", "Add new categories"),
    (_R.CATEGORIES, _A.UPDATE, "Update categories", "Edit existing categories"),
    (_R.CATEGORIES, _A.DELETE, "Delete categories", "Remove categories"),
    (_R.USERS, _A.VIEW, "View users", "List and inspect user accounts"),
    (_R.USERS, _A.CREATE, "Create users", "Provision new user accounts"),
    (_R.USERS, _A.UPDATE, "Update users", "Edit user accounts, roles and grants"),
    (_R.USERS, _A.DELETE, "Delete users", "Remove user accounts"),
    (_R.ORDERS, _A.VIEW, "View orders", "List and inspect orders"),
    (_R.ORDERS, _A.UPDATE, "Update orders", "Change order status"),
    (_R.SETTINGS, _A.VIEW, "View settings", "Access system settings"),
    (_R.SETTINGS, _A.UPDATE, "Update settings", "Change system settings"),
    (_R.NEWS, _A.VIEW, "View news", "List news and events"),
    (_R.NEWS, _A.CREATE, "Create news", "Publish news and events"),
    (_R.NEWS, _A.UPDATE, "Update news", "Edit news and events"),
    (_R.NEWS, _A.DELETE, "Delete news", "Remove news and events"),
    (_R.PARTNERS, _A.VIEW, "View partners", "List partners"),
    (_R.PARTNERS, _A.CREATE, "Create partners", "Add partners"),
    (_R.PARTNERS, _A.UPDATE, "Update partners", "Edit partners"),
    (_R.PARTNERS, _A.DELETE, "Delete partners", "Remove partners"),
    (_R.TESTIMONIALS, _A.VIEW, "View testimonials", "List customer testimonials"),
    (_R.TESTIMONIALS, _A.CREATE, "Create testimonials", "Add testimonials"),
    (_R.TESTIMONIALS, _A.UPDATE, "Update testimonials", "Edit testimonials"),
    (_R.TESTIMONIALS, _A.DELETE, "Delete testimonials", "Remove testimonials"),
    (_R.CONTACT_MESSAGES, _A.VIEW, "View messages", "Read contact messages"),
    (_R.CONTACT_MESSAGES, _A.UPDATE, "Process messages", "Mark contact messages read or handled"),
    (_R.CONTACT_MESSAGES, _A.DELETE, "Delete messages", "Remove contact messages"),
    (_R.AUTH, _A.VIEW, "View sessions", "Inspect sessions and security logs"),
    (_R.AUTH, _A.UPDATE, "Manage access", "Revoke sessions and unlock accounts"),
    (_R.PERMISSIONS, _A.VIEW, "View permissions", "List available permissions"),
    (_R.PERMISSIONS, _A.UPDATE, "Manage permissions", "Grant and revoke permissions"),
]


def _value(v: str) -> str:
    return v.value if isinstance(v, (PermissionResource, PermissionAction)) else v


# ── Catalogue ───────────────────────────────────────────────────────
async def seed_permissions(db: AsyncSession) -> int:
    """Insert any catalogue entries that are missing. Returns the number added."""
    result = await db.execute(select(Permission.resource, Permission.action))
    existing = {(r, a) for r, a in result.all()}
    added = 0
    for resource, action, name, description in PERMISSION_CATALOG:
        if (resource.value, action.value) in existing:
            continue
        db.add(
            Permission(
                resource=resource.value,
                action=action.value,
                name=name,
                description=description,
            )
        )
        added += 1
    if added:
        await db.commit()
        logger.info("Seeded %d permissions", added)
    return added


async def list_permissions(db: AsyncSession) -> list[Permission]:
    result = await db.execute(
        select(Permission).order_by(Permission.resource, Permission.action)
    )
    return list(result.scalars().all())


# ── Grants ──────────────────────────────────────────────────────────
async def get_user_permissions(db: AsyncSession, user_id: str) -> list[UserPermission]:
    result = await db.execute(
        select(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.is_granted.is_(True),
        )
    )
    return list(result.scalars().all())


async def has_permission(
    db: AsyncSession,
    user_id: str,
    resource: str,
    action: str,
) -> bool:
    result = await db.execute(
        select(UserPermission.id)
        .join(Permission, Permission.id == UserPermission.permission_id)
        .where(
            UserPermission.user_id == user_id,
            UserPermission.is_granted.is_(True),
            Permission.resource == _value(resource),
            Permission.action == _value(action),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def update_permissions(
    db: AsyncSession,
    user_id: str,
    permission_ids: Iterable[str],
    actor_id: str | None = None,
) -> list[UserPermission]:
    """Replace the user's whole grant set; omitted permissions are revoked."""
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found")

    wanted = list(dict.fromkeys(permission_ids))
    if wanted:
        result = await db.execute(select(Permission.id).where(Permission.id.in_(wanted)))
        unknown = set(wanted) - set(result.scalars().all())
        if unknown:
            raise BadRequestError(f"Unknown permission id(s): {', '.join(sorted(unknown))}")

    await db.execute(delete(UserPermission).where(UserPermission.user_id == user_id))
    db.add_all(
        [UserPermission(user_id=user_id, permission_id=pid, is_granted=True) for pid in wanted]
    )
    await db.commit()

    await log_security_event(
        db,
        user_id,
        SecurityEventType.PERMISSION_CHANGED,
        f"Permissions replaced ({len(wanted)} granted)",
        SecurityRiskLevel.MEDIUM,
        metadata={"permission_ids": wanted, "changed_by": actor_id},
    )
    return await get_user_permissions(db, user_id)


async def grant_all_permissions(db: AsyncSession, user_id: str) -> None:
    result = await db.execute(select(Permission.id))
    await update_permissions(db, user_id, result.scalars().all())


# ── Authorization decision ──────────────────────────────────────────
async def authorize(
    db: AsyncSession,
    user: User | None,
    required: Sequence[RequiredPermission],
) -> bool:
    if not required:
        return True
    if user is None:
        logger.info("Authorization denied: no authenticated user")
        return False
    if user.role == UserRole.SUPER_ADMIN.value:
        return True

    for resource, action in required:
        if not await has_permission(db, user.id, resource, action):
            logger.info(
                "Authorization denied: user %s (role %s) lacks %s:%s",
                user.id,
                user.role,
                _value(resource),
                _value(action),
            )
            return False
    return True
