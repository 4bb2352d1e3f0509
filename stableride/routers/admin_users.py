"""
Admin users: /api/admin/users (list, get, create, update role/permissions, deactivate)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.routers.admin_auth import admin_response
from stableride.schemas.schemas import (
    AdminUserCreate, AdminUserUpdate, AdminResponse, AdminListResponse, AdminRoleEnum,
)
from stableride.services import audit
from stableride.services.auth import hash_password
from stableride.services.permissions import ALL_PERMISSIONS

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/users", tags=["Admin: Users"])

can_read = require_permission("users:read")
can_write = require_permission("users:write")
can_delete = require_permission("users:delete")


async def _get(db: AsyncSession, admin_id: str, lock: bool = False) -> AdminUser:
    query = select(AdminUser).where(AdminUser.id == admin_id)
    if lock:
        query = query.with_for_update()
    admin = (await db.execute(query)).scalar_one_or_none()
    if not admin:
        raise HTTPException(status_code=404, detail="Admin user not found")
    return admin


def _check_permissions(permissions: list[str]) -> None:
    unknown = sorted(set(permissions) - set(ALL_PERMISSIONS))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown permissions: {', '.join(unknown)}")


async def _ensure_other_super_admin(db: AsyncSession, admin: AdminUser) -> None:
    """Refuse changes that would leave no active super admin."""
    if admin.role != "SUPER_ADMIN" or not admin.is_active:
        return
    others = (await db.execute(
        select(func.count()).select_from(AdminUser).where(
            AdminUser.role == "SUPER_ADMIN", AdminUser.is_active.is_(True), AdminUser.id != admin.id,
        )
    )).scalar()
    if not others:
        raise HTTPException(status_code=400, detail="At least one active super admin is required")


@router.get("", response_model=AdminListResponse, dependencies=[Depends(can_read)])
async def list_admins(
    role: AdminRoleEnum | None = None,
    is_active: bool | None = None,
    search: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if role:
        conditions.append(AdminUser.role == role.value)
    if is_active is not None:
        conditions.append(AdminUser.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(AdminUser.email).like(pattern),
            func.lower(AdminUser.first_name).like(pattern),
            func.lower(AdminUser.last_name).like(pattern),
        ))
    total = (await db.execute(select(func.count()).select_from(AdminUser).where(*conditions))).scalar()
    result = await db.execute(
        select(AdminUser).where(*conditions).order_by(AdminUser.created_at.desc()).limit(limit).offset(offset)
    )
    return AdminListResponse(
        items=[admin_response(a) for a in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{admin_id}", response_model=AdminResponse, dependencies=[Depends(can_read)])
async def get_admin(admin_id: str, db: AsyncSession = Depends(get_db)):
    return admin_response(await _get(db, admin_id))


@router.post("", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    payload: AdminUserCreate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    _check_permissions(payload.permissions)
    existing = (await db.execute(select(AdminUser).where(AdminUser.email == payload.email))).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="Email already in use")

    new_admin = AdminUser(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role.value,
        permissions=payload.permissions,
    )
    db.add(new_admin)
    await db.flush()
    audit.record(db, admin.id, "create", "admin_user", new_admin.id,
                 {"email": new_admin.email, "role": new_admin.role})
    await db.commit()
    await db.refresh(new_admin)
    logger.info("Admin %s created admin user %s (%s)", admin.id, new_admin.email, new_admin.role)
    return admin_response(new_admin)


@router.patch("/{admin_id}", response_model=AdminResponse)
async def update_admin(
    admin_id: str,
    payload: AdminUserUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    target = await _get(db, admin_id, lock=True)
    changes = payload.model_dump(exclude_unset=True)
    if "role" in changes and changes["role"] is not None:
        changes["role"] = changes["role"].value
    if changes.get("permissions") is not None:
        _check_permissions(changes["permissions"])

    new_role = changes.get("role") or target.role
    deactivating = changes.get("is_active") is False
    if target.id == admin.id and (deactivating or new_role != target.role):
        raise HTTPException(status_code=400, detail="You cannot change your own role or deactivate your own account")
    if target.role == "SUPER_ADMIN" and (deactivating or new_role != "SUPER_ADMIN"):
        await _ensure_other_super_admin(db, target)

    for field, value in changes.items():
        if value is not None:
            setattr(target, field, value)

    audit.record(db, admin.id, "update", "admin_user", target.id,
                 {field: value for field, value in changes.items() if value is not None})
    await db.commit()
    await db.refresh(target)
    return admin_response(target)


@router.delete("/{admin_id}", response_model=AdminResponse)
async def deactivate_admin(
    admin_id: str,
    admin: AdminUser = Depends(can_delete),
    db: AsyncSession = Depends(get_db),
):
    """Admins are never hard-deleted; their audit trail stays attached."""
    target = await _get(db, admin_id, lock=True)
    if target.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    await _ensure_other_super_admin(db, target)

    if target.is_active:
        target.is_active = False
        audit.record(db, admin.id, "deactivate", "admin_user", target.id, {"email": target.email})
        await db.commit()
        await db.refresh(target)
        logger.info("Admin %s deactivated admin user %s", admin.id, target.email)
    return admin_response(target)
