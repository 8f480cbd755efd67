"""
User administration endpoints.

Every route declares the (resource, action) grants it needs; super admins
pass regardless, every other role needs explicit grants.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopadmin.api.v1.deps import get_db, require_permissions
from shopadmin.models.user import User
from shopadmin.schemas.auth import MessageResponse
from shopadmin.schemas.security import (PermissionRead, UpdatePermissionsRequest,
                                        UserPermissionRead)
from shopadmin.schemas.user import (BulkDelete, BulkStatusUpdate, UserCreate,
                                    UserList, UserPasswordUpdate, UserRead,
                                    UserRoleUpdate, UserStats, UserUpdate)
from shopadmin.services import permissions as permission_service
from shopadmin.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])

can_view = require_permissions(("users", "view"))
can_create = require_permissions(("users", "create"))
can_update = require_permissions(("users", "update"))
can_delete = require_permissions(("users", "delete"))


@router.post("", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(can_create),
) -> User:
    return await user_service.create_user(db, body, actor_id=actor.id)


@router.get("", response_model=UserList)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    role: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc|ASC|DESC)$"),
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> UserList:
    return await user_service.list_users(
        db, page, limit, search, role, is_active, sort_by, sort_order
    )


@router.get("/stats", response_model=UserStats)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> UserStats:
    return await user_service.user_stats(db)


@router.get("/permissions/all", response_model=list[PermissionRead])
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
):
    return await permission_service.list_permissions(db)


@router.patch("/bulk/status", response_model=MessageResponse)
async def bulk_update_status(
    body: BulkStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_update),
) -> MessageResponse:
    count = await user_service.bulk_update_status(db, body.ids, body.is_active)
    return MessageResponse(message=f"{count} user(s) updated")


@router.delete("/bulk", response_model=MessageResponse)
async def bulk_delete(
    body: BulkDelete,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_delete),
) -> MessageResponse:
    await user_service.bulk_delete(db, body.ids)
    return MessageResponse(message=f"{len(body.ids)} user(s) deleted")


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
) -> User:
    return await user_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(can_update),
) -> User:
    return await user_service.update_user(db, user_id, body, actor_id=actor.id)


@router.patch("/{user_id}/password", response_model=MessageResponse)
async def update_user_password(
    user_id: str,
    body: UserPasswordUpdate,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_update),
) -> MessageResponse:
    await user_service.set_password(db, user_id, body.password)
    return MessageResponse(message="Password updated")


@router.patch("/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: str,
    body: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_update),
) -> User:
    return await user_service.update_role(db, user_id, body.role)


@router.patch("/{user_id}/toggle-status", response_model=UserRead)
async def toggle_user_status(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_update),
) -> User:
    return await user_service.toggle_status(db, user_id)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_delete),
) -> MessageResponse:
    await user_service.delete_user(db, user_id)
    return MessageResponse(message="User deleted")


@router.get("/{user_id}/permissions", response_model=list[UserPermissionRead])
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: User = Depends(can_view),
):
    await user_service.get_user(db, user_id)
    return await permission_service.get_user_permissions(db, user_id)


@router.patch("/{user_id}/permissions", response_model=list[UserPermissionRead])
async def update_user_permissions(
    user_id: str,
    body: UpdatePermissionsRequest,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(can_update),
):
    return await permission_service.update_permissions(
        db, user_id, body.permissions, actor_id=actor.id
    )
