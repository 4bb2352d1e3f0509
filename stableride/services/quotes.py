"""
Server-side price assembly shared by quotes and booking creation.
"""
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.errors import ValidationError
from stableride.models.service_area import ServiceArea
from stableride.services.business_hours import holiday_on
from stableride.services.enhancements import calculate_enhancement_cost, to_money
from stableride.services.geofence import calculate_surcharge, matching_areas
from stableride.services.pricing import calculate_fare, distance_miles

settings = get_settings()


async def load_active_areas(db: AsyncSession) -> list[ServiceArea]:
    result = await db.execute(select(ServiceArea).where(ServiceArea.is_active.is_(True)))
    return list(result.scalars().all())


def booking_total(base, surcharge, enhancements, gratuity) -> Decimal:
    return to_money(
        Decimal(str(base)) + Decimal(str(surcharge)) + Decimal(str(enhancements)) + Decimal(str(gratuity))
    )


async def build_quote(db: AsyncSession, payload) -> dict:
    """
    payload is a QuoteRequest (or BookingCreateRequest). Returns the fare
    breakdown, service-area surcharge on the pickup point, enhancement costs
    (priced against the fare total), gratuity and grand total.
    """
    miles = None
    if payload.dropoff is not None:
        miles = distance_miles(payload.pickup.lat, payload.pickup.lng, payload.dropoff.lat, payload.dropoff.lng)

    holiday = await holiday_on(db, payload.scheduled_at)
    fare = calculate_fare(
        payload.service_type.value,
        payload.scheduled_at,
        miles=miles,
        return_at=payload.return_at,
        duration_hours=payload.duration_hours,
        holiday_percentage=holiday.surcharge_percentage if holiday else None,
    )

    areas = await load_active_areas(db)
    if settings.enforce_service_area and not matching_areas(areas, payload.pickup.lat, payload.pickup.lng):
        raise ValidationError("Pickup location is outside our service area")
    surcharge = calculate_surcharge(areas, payload.pickup.lat, payload.pickup.lng, fare["total"])

    selections = payload.enhancements.model_dump() if payload.enhancements else {}
    enhancements = calculate_enhancement_cost(fare["total"], selections)
    gratuity = to_money(payload.gratuity_amount)

    return {
        "distance_miles": round(miles, 2) if miles is not None else None,
        "fare": fare,
        "service_area_surcharge": surcharge,
        "enhancements": enhancements,
        "selections": selections,
        "gratuity": gratuity,
        "total": booking_total(fare["total"], surcharge, enhancements["total"], gratuity),
    }
