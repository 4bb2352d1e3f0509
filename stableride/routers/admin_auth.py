"""
Admin auth router: POST /api/admin/auth/login, GET /api/admin/auth/me
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.middleware.auth import create_admin_token, get_current_admin
from stableride.models.admin import AdminUser
from stableride.schemas.schemas import LoginRequest, AdminResponse, AdminTokenResponse
from stableride.services import audit
from stableride.services.auth import verify_password
from stableride.services.permissions import permissions_for

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])


def admin_response(admin: AdminUser) -> AdminResponse:
    return AdminResponse(
        id=admin.id,
        email=admin.email,
        first_name=admin.first_name,
        last_name=admin.last_name,
        role=admin.role,
        permissions=sorted(permissions_for(admin.role, admin.permissions)),
        is_active=admin.is_active,
        last_login_at=admin.last_login_at,
    )


@router.post("/login", response_model=AdminTokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    admin = (
        await db.execute(select(AdminUser).where(AdminUser.email == payload.email))
    ).scalar_one_or_none()
    if not admin or not verify_password(payload.password, admin.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not admin.is_active:
        raise HTTPException(status_code=403, detail="Admin account is disabled")

    admin.last_login_at = datetime.now(timezone.utc)
    audit.record(db, admin.id, "login", "admin_user", admin.id)
    await db.commit()
    await db.refresh(admin)
    return AdminTokenResponse(
        access_token=create_admin_token(admin.id, admin.role),
        expires_in=settings.admin_token_expire_minutes * 60,
        admin=admin_response(admin),
    )


@router.get("/me", response_model=AdminResponse)
async def me(admin: AdminUser = Depends(get_current_admin)):
    return admin_response(admin)
