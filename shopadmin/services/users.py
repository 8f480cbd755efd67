"""
User administration with the last-active-super-admin invariant.

Every operation that deletes, deactivates or demotes users re-reads the
set of active super admins right before mutating. Two concurrent
requests removing the last two super admins can both pass that check;
this race is known and not handled here.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.core.exceptions import BadRequestError, ConflictError, NotFoundError
from shopadmin.core.security import (get_password_hash, utcnow,
                                     validate_password_strength)
from shopadmin.models.permission import UserPermission
from shopadmin.models.security_log import SecurityLog
from shopadmin.models.user import User, UserRole
from shopadmin.models.user_session import UserSession
from shopadmin.schemas.user import UserCreate, UserList, UserStats, UserUpdate
from shopadmin.services.permissions import update_permissions

logger = logging.getLogger(__name__)

_SORTABLE = {"created_at", "email", "first_name", "last_name", "role", "last_login_at"}
# Only these columns accept an explicit null on update
_NULLABLE_FIELDS = {"phone"}


async def _active_super_admin_ids(db: AsyncSession) -> set[str]:
    result = await db.execute(
        select(User.id).where(
            User.role == UserRole.SUPER_ADMIN.value,
            User.is_active.is_(True),
        )
    )
    return set(result.scalars().all())


async def ensure_super_admin_remains(db: AsyncSession, affected_ids: Collection[str]) -> None:
    """Fail if removing *affected_ids* would leave no active super admin."""
    active = await _active_super_admin_ids(db)
    if active and not (active - set(affected_ids)):
        raise BadRequestError("Cannot remove the last active super admin")


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, body: UserCreate, actor_id: str | None = None) -> User:
    if await get_user_by_email(db, body.email) is not None:
        raise ConflictError("User with this email already exists")
    validate_password_strength(body.password)

    user = User(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone=body.phone,
        hashed_password=get_password_hash(body.password),
        role=body.role,
        is_active=True,
        password_changed_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s provisioned with role %s", user.id, user.role)

    if body.permissions:
        await update_permissions(db, user.id, body.permissions, actor_id=actor_id)
    return user


async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> UserList:
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    if role:
        filters.append(User.role == role)
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))

    column = getattr(User, sort_by if sort_by in _SORTABLE else "created_at")
    order = column.asc() if sort_order.lower() == "asc" else column.desc()

    total = (await db.execute(select(func.count(User.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(User).where(*filters).order_by(order).offset((page - 1) * limit).limit(limit)
    )
    return UserList(
        users=list(result.scalars().all()),
        total=total,
        page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
    )


async def update_user(
    db: AsyncSession,
    user_id: str,
    body: UserUpdate,
    actor_id: str | None = None,
) -> User:
    user = await get_user(db, user_id)
    changes = {
        field: value
        for field, value in body.model_dump(
            exclude_unset=True, exclude={"permissions", "password"}
        ).items()
        if value is not None or field in _NULLABLE_FIELDS
    }

    if "email" in changes and changes["email"] != user.email:
        if await get_user_by_email(db, changes["email"]) is not None:
            raise ConflictError("Email already exists")

    demoted = "role" in changes and changes["role"] != UserRole.SUPER_ADMIN.value
    deactivated = changes.get("is_active") is False
    if demoted or deactivated:
        await ensure_super_admin_remains(db, [user_id])

    if body.password is not None:
        validate_password_strength(body.password)
        changes["hashed_password"] = get_password_hash(body.password)
        changes["password_changed_at"] = utcnow()

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)

    if body.permissions is not None:
        await update_permissions(db, user_id, body.permissions, actor_id=actor_id)
    return user


async def set_password(db: AsyncSession, user_id: str, password: str) -> None:
    await get_user(db, user_id)
    validate_password_strength(password)
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(hashed_password=get_password_hash(password), password_changed_at=utcnow())
    )
    await db.commit()


async def update_role(db: AsyncSession, user_id: str, role: str) -> User:
    user = await get_user(db, user_id)
    if role != UserRole.SUPER_ADMIN.value:
        await ensure_super_admin_remains(db, [user_id])
    user.role = role
    await db.commit()
    await db.refresh(user)
    return user


async def toggle_status(db: AsyncSession, user_id: str) -> User:
    user = await get_user(db, user_id)
    if user.is_active:
        await ensure_super_admin_remains(db, [user_id])
    user.is_active = not user.is_active
    await db.commit()
    await db.refresh(user)
    return user


async def _purge(db: AsyncSession, ids: Collection[str]) -> None:
    ids = list(ids)
    await db.execute(delete(UserPermission).where(UserPermission.user_id.in_(ids)))
    await db.execute(delete(UserSession).where(UserSession.user_id.in_(ids)))
    await db.execute(
        update(SecurityLog).where(SecurityLog.user_id.in_(ids)).values(user_id=None)
    )
    await db.execute(delete(User).where(User.id.in_(ids)))
    await db.commit()


async def delete_user(db: AsyncSession, user_id: str) -> None:
    await get_user(db, user_id)
    await ensure_super_admin_remains(db, [user_id])
    await _purge(db, [user_id])
    logger.info("User %s deleted", user_id)


async def bulk_update_status(db: AsyncSession, ids: list[str], is_active: bool) -> int:
    if not is_active:
        await ensure_super_admin_remains(db, ids)
    result = await db.execute(update(User).where(User.id.in_(ids)).values(is_active=is_active))
    await db.commit()
    return result.rowcount


async def bulk_delete(db: AsyncSession, ids: list[str]) -> None:
    await ensure_super_admin_remains(db, ids)
    await _purge(db, ids)
    logger.info("Deleted %d users", len(ids))


async def user_stats(db: AsyncSession) -> UserStats:
    async def _count(*where) -> int:
        return (await db.execute(select(func.count(User.id)).where(*where))).scalar_one()

    total = await _count()
    active = await _count(User.is_active.is_(True))
    return UserStats(
        total=total,
        active=active,
        inactive=total - active,
        super_admins=await _count(User.role == UserRole.SUPER_ADMIN.value),
        admins=await _count(User.role == UserRole.ADMIN.value),
        users=await _count(User.role.in_([UserRole.USER.value, UserRole.UTILISATEUR.value])),
    )
