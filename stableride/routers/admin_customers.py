"""
Admin customers and drivers: /api/admin/customers
(list, get, activate/deactivate, driver enrollment and removal)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.booking import Booking
from stableride.models.user import User
from stableride.schemas.schemas import (
    CustomerAdminResponse, CustomerListResponse, CustomerStatusUpdate, DriverEnrollRequest,
)
from stableride.services import audit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/customers", tags=["Admin: Customers"])

can_read = require_permission("customers:read")
can_write = require_permission("customers:write")

# Assigned rides in these states keep a driver on the roster
UNFINISHED_STATUSES = ("PENDING", "CONFIRMED", "IN_PROGRESS")


async def _get(db: AsyncSession, user_id: str) -> User:
    user = (
        await db.execute(select(User).where(User.id == user_id).with_for_update())
    ).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="Customer not found")
    return user


async def _ensure_no_active_rides(db: AsyncSession, driver: User) -> None:
    count = (await db.execute(
        select(func.count()).select_from(Booking).where(
            Booking.driver_id == driver.id, Booking.status.in_(UNFINISHED_STATUSES),
        )
    )).scalar()
    if count:
        raise HTTPException(
            status_code=409, detail=f"Driver still has {count} assigned ride(s); reassign them first",
        )


@router.get("", response_model=CustomerListResponse, dependencies=[Depends(can_read)])
async def list_customers(
    search: str | None = Query(default=None, max_length=100),
    is_driver: bool | None = None,
    is_active: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if is_driver is not None:
        conditions.append(User.is_driver.is_(is_driver))
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(User.email).like(pattern),
            func.lower(User.first_name).like(pattern),
            func.lower(User.last_name).like(pattern),
            User.phone.like(pattern),
        ))
    total = (await db.execute(select(func.count()).select_from(User).where(*conditions))).scalar()
    result = await db.execute(
        select(User).where(*conditions).order_by(User.created_at.desc()).limit(limit).offset(offset)
    )
    return CustomerListResponse(
        items=[CustomerAdminResponse.model_validate(u) for u in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{user_id}", response_model=CustomerAdminResponse, dependencies=[Depends(can_read)])
async def get_customer(user_id: str, db: AsyncSession = Depends(get_db)):
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="Customer not found")
    return CustomerAdminResponse.model_validate(user)


@router.patch("/{user_id}/status", response_model=CustomerAdminResponse)
async def set_customer_status(
    user_id: str,
    payload: CustomerStatusUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """Deactivated accounts can no longer log in or use their tokens."""
    user = await _get(db, user_id)
    if user.is_active == payload.is_active:
        return CustomerAdminResponse.model_validate(user)

    if not payload.is_active and user.is_driver:
        await _ensure_no_active_rides(db, user)
        user.driver_status = "OFFLINE"
    user.is_active = payload.is_active
    audit.record(db, admin.id, "activate" if payload.is_active else "deactivate", "customer", user.id,
                 {"reason": payload.reason})
    await db.commit()
    await db.refresh(user)
    logger.info("Admin %s set customer %s active=%s", admin.id, user.id, user.is_active)
    return CustomerAdminResponse.model_validate(user)


@router.post("/{user_id}/driver", response_model=CustomerAdminResponse)
async def enroll_driver(
    user_id: str,
    payload: DriverEnrollRequest,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """Make a customer a driver, or update an existing driver's vehicle details."""
    user = await _get(db, user_id)
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Cannot enroll a deactivated account as a driver")

    enrolled = not user.is_driver
    user.is_driver = True
    user.driver_status = user.driver_status or "OFFLINE"
    if payload.vehicle_info:
        user.vehicle_info = {**(user.vehicle_info or {}), **payload.vehicle_info}
    audit.record(db, admin.id, "enroll_driver" if enrolled else "update_driver", "customer", user.id,
                 {"vehicle_info": payload.vehicle_info})
    await db.commit()
    await db.refresh(user)
    return CustomerAdminResponse.model_validate(user)


@router.delete("/{user_id}/driver", response_model=CustomerAdminResponse)
async def remove_driver(
    user_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """Take a driver off the roster; their ride history is kept."""
    user = await _get(db, user_id)
    if not user.is_driver:
        raise HTTPException(status_code=400, detail="User is not a driver")
    await _ensure_no_active_rides(db, user)

    user.is_driver = False
    user.driver_status = None
    audit.record(db, admin.id, "remove_driver", "customer", user.id)
    await db.commit()
    await db.refresh(user)
    logger.info("Admin %s removed driver %s", admin.id, user.id)
    return CustomerAdminResponse.model_validate(user)
