"""
Enhancements router: POST /api/enhancements/calculate, GET /api/enhancements/vehicles,
                     GET /api/enhancements/options, POST|GET /api/enhancements/bookings/{id}
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import get_current_customer
from stableride.models.booking import TripEnhancement
from stableride.models.payment import Payment
from stableride.models.user import User
from stableride.routers.bookings import get_owned_booking, breakdown_to_json
from stableride.schemas.schemas import (
    EnhancementCalculateRequest, EnhancementCostResponse, EnhancementSelection,
    VehicleOption, EnhancementOption, BookingEnhancementResponse,
)
from stableride.services.enhancements import (
    calculate_enhancement_cost, list_enhancement_options, VEHICLE_OPTIONS, VEHICLE_MULTIPLIERS,
)
from stableride.services.quotes import booking_total

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/enhancements", tags=["Enhancements"])


@router.post("/calculate", response_model=EnhancementCostResponse)
async def calculate(payload: EnhancementCalculateRequest):
    result = calculate_enhancement_cost(payload.amount, payload.enhancements.model_dump())
    return EnhancementCostResponse(**result)


@router.get("/vehicles", response_model=list[VehicleOption])
async def list_vehicles():
    return [VehicleOption(**v, multiplier=float(VEHICLE_MULTIPLIERS[v["type"]])) for v in VEHICLE_OPTIONS]


@router.get("/options", response_model=list[EnhancementOption])
async def list_options(category: str | None = Query(default=None)):
    return [EnhancementOption(**o) for o in list_enhancement_options(category)]


@router.post("/bookings/{booking_id}", response_model=BookingEnhancementResponse)
async def upsert_booking_enhancements(
    booking_id: str,
    payload: EnhancementSelection,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """Replace a booking's enhancements and recompute its totals."""
    booking = await get_owned_booking(db, booking_id, user, lock=True)
    if booking.status != "PENDING":
        raise HTTPException(status_code=400, detail="Enhancements can only be changed on pending bookings")
    paid = (
        await db.execute(select(Payment.id).where(Payment.booking_id == booking.id, Payment.status == "COMPLETED"))
    ).first()
    if paid:
        raise HTTPException(status_code=400, detail="Booking is already paid")

    selections = payload.model_dump()
    result = calculate_enhancement_cost(booking.base_amount, selections)

    record = (
        await db.execute(select(TripEnhancement).where(TripEnhancement.booking_id == booking.id))
    ).scalar_one_or_none()
    if record is None:
        record = TripEnhancement(booking_id=booking.id)
        db.add(record)
    record.selections = selections
    record.breakdown = breakdown_to_json(result["breakdown"])
    record.total_cost = result["total"]

    booking.enhancement_amount = result["total"]
    booking.total_amount = booking_total(
        booking.base_amount, booking.surcharge_amount, result["total"], booking.gratuity_amount
    )
    await db.commit()
    logger.info("Booking %s enhancements updated: %s", booking.id, result["total"])
    return BookingEnhancementResponse(
        booking_id=booking.id,
        selections=selections,
        breakdown=record.breakdown,
        total_cost=result["total"],
        booking_total=booking.total_amount,
    )


@router.get("/bookings/{booking_id}", response_model=BookingEnhancementResponse)
async def get_booking_enhancements(
    booking_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_owned_booking(db, booking_id, user)
    record = (
        await db.execute(select(TripEnhancement).where(TripEnhancement.booking_id == booking.id))
    ).scalar_one_or_none()
    if record is None:
        return BookingEnhancementResponse(
            booking_id=booking.id, selections={}, breakdown=[], total_cost=0, booking_total=booking.total_amount
        )
    return BookingEnhancementResponse(
        booking_id=booking.id,
        selections=record.selections,
        breakdown=record.breakdown,
        total_cost=record.total_cost,
        booking_total=booking.total_amount,
    )
