"""
Admin bookings: /api/admin/bookings (list, get, status override, driver assignment)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.booking import Booking
from stableride.models.user import User
from stableride.schemas.schemas import (
    BookingResponse, BookingListResponse, BookingStatusEnum, BookingStatusUpdate, AssignDriverRequest,
)
from stableride.services import audit
from stableride.services.booking_state import ensure_transition

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/bookings", tags=["Admin: Bookings"])

can_read = require_permission("bookings:read")
can_write = require_permission("bookings:write")

ASSIGNABLE_STATUSES = {"PENDING", "CONFIRMED"}


async def _get(db: AsyncSession, booking_id: str, lock: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if lock:
        query = query.with_for_update()
    booking = (await db.execute(query)).scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.get("", response_model=BookingListResponse, dependencies=[Depends(can_read)])
async def list_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if status_filter:
        conditions.append(Booking.status == status_filter.value)
    total = (await db.execute(select(func.count()).select_from(Booking).where(*conditions))).scalar()
    result = await db.execute(
        select(Booking).where(*conditions).order_by(Booking.scheduled_at.desc()).limit(limit).offset(offset)
    )
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{booking_id}", response_model=BookingResponse, dependencies=[Depends(can_read)])
async def get_booking(booking_id: str, db: AsyncSession = Depends(get_db)):
    return BookingResponse.model_validate(await _get(db, booking_id))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    booking = await _get(db, booking_id, lock=True)
    previous = booking.status
    ensure_transition(previous, payload.status.value)
    booking.status = payload.status.value

    # A finished ride frees its driver
    if booking.status in ("COMPLETED", "CANCELLED") and booking.driver_id:
        driver = (await db.execute(select(User).where(User.id == booking.driver_id))).scalar_one_or_none()
        if driver and driver.driver_status == "BUSY":
            driver.driver_status = "AVAILABLE"

    audit.record(db, admin.id, "update_status", "booking", booking.id,
                 {"from": previous, "to": booking.status, "reason": payload.reason})
    await db.commit()
    await db.refresh(booking)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/assign-driver", response_model=BookingResponse)
async def assign_driver(
    booking_id: str,
    payload: AssignDriverRequest,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """
    Uses SELECT FOR UPDATE on the booking so two dispatchers cannot assign
    different drivers at the same time.
    """
    booking = await _get(db, booking_id, lock=True)
    if booking.status not in ASSIGNABLE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot assign a driver to a {booking.status} booking")

    driver = (
        await db.execute(select(User).where(User.id == payload.driver_id, User.is_driver.is_(True)))
    ).scalar_one_or_none()
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")
    if driver.driver_status in (None, "OFFLINE"):
        raise HTTPException(status_code=400, detail="Driver is offline")

    previous = booking.driver_id
    booking.driver_id = driver.id
    audit.record(db, admin.id, "assign_driver", "booking", booking.id,
                 {"driver_id": driver.id, "previous_driver_id": previous})
    await db.commit()
    await db.refresh(booking)
    logger.info("Booking %s assigned to driver %s", booking.id, driver.id)
    return BookingResponse.model_validate(booking)
