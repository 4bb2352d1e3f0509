"""
Bookings router: POST /api/bookings, GET /api/bookings, GET /api/bookings/{id},
                 POST /api/bookings/{id}/cancel, GET /api/bookings/{id}/driver-location
"""
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import get_current_customer
from stableride.models.booking import Booking, TripEnhancement
from stableride.models.user import User
from stableride.redis_client import get_redis, get_driver_location
from stableride.schemas.schemas import (
    BookingCreateRequest, BookingResponse, BookingListResponse, BookingStatusEnum, LiveLocationResponse,
)
from stableride.services.booking_state import ensure_customer_can_cancel, ensure_transition
from stableride.services.quotes import build_quote

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


def new_reference() -> str:
    return f"SR-{uuid.uuid4().hex[:8].upper()}"


def breakdown_to_json(breakdown: list[dict]) -> list[dict]:
    return [{"item": b["item"], "cost": float(b["cost"])} for b in breakdown]


async def get_owned_booking(db: AsyncSession, booking_id: str, user: User, lock: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if lock:
        query = query.with_for_update()
    booking = (await db.execute(query)).scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not your booking")
    return booking


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BookingResponse)
async def create_booking(
    payload: BookingCreateRequest,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """
    Prices the trip server-side and stores the booking together with its
    enhancement selections. Client-supplied totals are never trusted.
    """
    quote = await build_quote(db, payload)

    booking = Booking(
        reference=new_reference(),
        user_id=user.id,
        service_type=payload.service_type.value,
        scheduled_at=payload.scheduled_at,
        return_at=payload.return_at,
        duration_hours=payload.duration_hours,
        pickup_address=payload.pickup.address,
        pickup_lat=payload.pickup.lat,
        pickup_lng=payload.pickup.lng,
        dropoff_address=payload.dropoff.address if payload.dropoff else None,
        dropoff_lat=payload.dropoff.lat if payload.dropoff else None,
        dropoff_lng=payload.dropoff.lng if payload.dropoff else None,
        base_amount=quote["fare"]["total"],
        surcharge_amount=quote["service_area_surcharge"],
        enhancement_amount=quote["enhancements"]["total"],
        gratuity_amount=quote["gratuity"],
        total_amount=quote["total"],
        status="PENDING",
        contact_phone=payload.contact_phone or user.phone,
        notes=payload.notes,
    )
    db.add(booking)
    await db.flush()

    if quote["selections"]:
        db.add(TripEnhancement(
            booking_id=booking.id,
            selections=quote["selections"],
            breakdown=breakdown_to_json(quote["enhancements"]["breakdown"]),
            total_cost=quote["enhancements"]["total"],
        ))

    await db.commit()
    await db.refresh(booking)
    logger.info("Booking %s (%s) created for user %s total=%s", booking.id, booking.reference, user.id, booking.total_amount)
    return BookingResponse.model_validate(booking)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    conditions = [Booking.user_id == user.id]
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


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_owned_booking(db, booking_id, user)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """Customers may cancel PENDING or CONFIRMED bookings more than 24h before pickup."""
    booking = await get_owned_booking(db, booking_id, user, lock=True)
    ensure_customer_can_cancel(booking.status, booking.scheduled_at)
    ensure_transition(booking.status, "CANCELLED")

    booking.status = "CANCELLED"
    await db.commit()
    await db.refresh(booking)
    logger.info("Booking %s cancelled by customer", booking.id)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/driver-location", response_model=LiveLocationResponse)
async def driver_location(
    booking_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """Live driver position for the customer while the ride is active."""
    booking = await get_owned_booking(db, booking_id, user)
    if not booking.driver_id:
        return LiveLocationResponse(booking_id=booking.id)
    location = None
    if booking.status in ("CONFIRMED", "IN_PROGRESS"):
        redis = await get_redis()
        location = await get_driver_location(redis, booking.driver_id)
    return LiveLocationResponse(booking_id=booking.id, driver_id=booking.driver_id, location=location)
