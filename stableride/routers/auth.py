"""
Customer auth router: POST /api/auth/register, POST /api/auth/login, GET /api/auth/me
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.middleware.auth import create_customer_token, get_current_customer
from stableride.models.user import User
from stableride.schemas.schemas import RegisterRequest, LoginRequest, TokenResponse, UserResponse
from stableride.services.auth import (
    hash_password, verify_password, is_locked, register_failed_login, register_successful_login,
)

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_customer_token(user.id),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=TokenResponse)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    existing = (await db.execute(select(User.id).where(User.email == payload.email))).first()
    if existing:
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Five consecutive failures lock the account for 30 minutes (configurable).
    The error message does not reveal whether the email exists.
    """
    user = (await db.execute(select(User).where(User.email == payload.email))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    if is_locked(user):
        raise HTTPException(status_code=423, detail="Account temporarily locked, try again later")

    if not verify_password(payload.password, user.password_hash):
        register_failed_login(user)
        await db.commit()
        logger.warning("Failed login for user %s", user.id)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    register_successful_login(user)
    await db.commit()
    await db.refresh(user)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_customer)):
    return UserResponse.model_validate(user)
