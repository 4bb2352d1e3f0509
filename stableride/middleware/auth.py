from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.models.admin import AdminUser
from stableride.models.user import User
from stableride.services.permissions import has_permission

settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)

CUSTOMER_SCOPE = "customer"
ADMIN_SCOPE = "admin"


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    """Sign a JWT with the configured secret (HS256)."""
    payload = dict(data)
    minutes = expires_minutes or settings.access_token_expire_minutes
    payload.setdefault("exp", datetime.now(timezone.utc) + timedelta(minutes=minutes))
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_customer_token(user_id: str) -> str:
    return create_access_token({"sub": user_id, "scope": CUSTOMER_SCOPE})


def create_admin_token(admin_id: str, role: str) -> str:
    return create_access_token(
        {"sub": admin_id, "scope": ADMIN_SCOPE, "role": role},
        expires_minutes=settings.admin_token_expire_minutes,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Decode and validate the JWT Bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return payload


async def get_current_customer(
    token_data: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the customer (or driver) behind a customer-scoped token."""
    if token_data.get("scope") != CUSTOMER_SCOPE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Customer token required")
    user = (await db.execute(select(User).where(User.id == token_data["sub"]))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User no longer exists")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account inactive")
    return user


async def get_current_driver(user: User = Depends(get_current_customer)) -> User:
    if not user.is_driver:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Driver access required")
    return user


async def get_current_admin(
    token_data: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    if token_data.get("scope") != ADMIN_SCOPE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin token required")
    admin = (
        await db.execute(select(AdminUser).where(AdminUser.id == token_data["sub"]))
    ).scalar_one_or_none()
    if not admin or not admin.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin account inactive")
    return admin


def require_permission(permission: str):
    """Dependency factory: 403 unless the admin's role (or extra grants) include `permission`."""
    async def checker(admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        if not has_permission(admin.role, permission, admin.permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return admin
    return checker
