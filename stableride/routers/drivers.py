"""
Driver router (driver accounts only):
  GET  /api/driver/schedule/today     GET  /api/driver/active
  GET  /api/driver/rides/{id}         POST /api/driver/rides/{id}/start
  POST /api/driver/rides/{id}/complete
  POST /api/driver/location           PUT  /api/driver/availability
  GET  /api/driver/profile            GET  /api/driver/earnings/today
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import get_current_driver
from stableride.models.booking import Booking
from stableride.models.user import User
from stableride.redis_client import get_redis, set_driver_location
from stableride.schemas.schemas import (
    BookingResponse, DriverLocationUpdate, DriverAvailabilityUpdate, DriverProfileResponse, DriverEarnings,
)
from stableride.services.booking_state import ensure_transition
from stableride.services.enhancements import to_money

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/driver", tags=["Driver"])


def today_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def get_assigned_booking(db: AsyncSession, booking_id: str, driver: User, lock: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if lock:
        query = query.with_for_update()
    booking = (await db.execute(query)).scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Ride not found")
    if booking.driver_id != driver.id:
        raise HTTPException(status_code=403, detail="Ride is not assigned to you")
    return booking


async def find_active_ride(db: AsyncSession, driver_id: str) -> Booking | None:
    result = await db.execute(
        select(Booking)
        .where(Booking.driver_id == driver_id, Booking.status == "IN_PROGRESS")
        .order_by(Booking.scheduled_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.get("/schedule/today", response_model=list[BookingResponse])
async def todays_schedule(driver: User = Depends(get_current_driver), db: AsyncSession = Depends(get_db)):
    start, end = today_window()
    result = await db.execute(
        select(Booking)
        .where(
            Booking.driver_id == driver.id,
            Booking.scheduled_at >= start,
            Booking.scheduled_at < end,
            Booking.status != "CANCELLED",
        )
        .order_by(Booking.scheduled_at)
    )
    return [BookingResponse.model_validate(b) for b in result.scalars().all()]


@router.get("/active", response_model=Optional[BookingResponse])
async def active_ride(driver: User = Depends(get_current_driver), db: AsyncSession = Depends(get_db)):
    booking = await find_active_ride(db, driver.id)
    return BookingResponse.model_validate(booking) if booking else None


@router.get("/rides/{booking_id}", response_model=BookingResponse)
async def ride_details(
    booking_id: str,
    driver: User = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    return BookingResponse.model_validate(await get_assigned_booking(db, booking_id, driver))


@router.post("/rides/{booking_id}/start", response_model=BookingResponse)
async def start_ride(
    booking_id: str,
    driver: User = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_assigned_booking(db, booking_id, driver, lock=True)
    ensure_transition(booking.status, "IN_PROGRESS")

    booking.status = "IN_PROGRESS"
    driver.driver_status = "BUSY"
    await db.commit()
    await db.refresh(booking)
    logger.info("Driver %s started ride %s", driver.id, booking.id)
    return BookingResponse.model_validate(booking)


@router.post("/rides/{booking_id}/complete", response_model=BookingResponse)
async def complete_ride(
    booking_id: str,
    driver: User = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_assigned_booking(db, booking_id, driver, lock=True)
    ensure_transition(booking.status, "COMPLETED")

    booking.status = "COMPLETED"
    driver.total_trips = (driver.total_trips or 0) + 1
    driver.driver_status = "AVAILABLE"
    await db.commit()
    await db.refresh(booking)
    logger.info("Driver %s completed ride %s", driver.id, booking.id)
    return BookingResponse.model_validate(booking)


@router.post("/location", status_code=status.HTTP_204_NO_CONTENT)
async def update_location(
    payload: DriverLocationUpdate,
    driver: User = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Live position goes to Redis only; it expires if the app stops reporting."""
    active = await find_active_ride(db, driver.id)
    redis = await get_redis()
    await set_driver_location(redis, driver.id, {
        "lat": payload.lat,
        "lng": payload.lng,
        "heading": payload.heading,
        "speed": payload.speed,
        "booking_id": active.id if active else None,
        "updated_at": (payload.timestamp or datetime.now(timezone.utc)).isoformat(),
    })


@router.put("/availability", response_model=DriverProfileResponse)
async def update_availability(
    payload: DriverAvailabilityUpdate,
    driver: User = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    if await find_active_ride(db, driver.id):
        raise HTTPException(status_code=400, detail="Finish the active ride before changing availability")
    driver.driver_status = payload.status.value
    await db.commit()
    await db.refresh(driver)
    return DriverProfileResponse.model_validate(driver)


@router.get("/profile", response_model=DriverProfileResponse)
async def profile(driver: User = Depends(get_current_driver)):
    return DriverProfileResponse.model_validate(driver)


@router.get("/earnings/today", response_model=DriverEarnings)
async def earnings_today(driver: User = Depends(get_current_driver), db: AsyncSession = Depends(get_db)):
    """Driver earnings are the fare plus gratuity of rides completed today."""
    start, end = today_window()
    result = await db.execute(
        select(Booking.base_amount, Booking.gratuity_amount).where(
            Booking.driver_id == driver.id,
            Booking.status == "COMPLETED",
            Booking.scheduled_at >= start,
            Booking.scheduled_at < end,
        )
    )
    rows = result.all()
    total = sum((Decimal(str(base)) + Decimal(str(tip or 0)) for base, tip in rows), Decimal("0"))
    return DriverEarnings(date=start.date(), completed_rides=len(rows), total_earnings=to_money(total))
