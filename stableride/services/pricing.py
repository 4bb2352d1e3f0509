"""
Fare calculation for the three service types.
"""
from datetime import datetime
from decimal import Decimal

from stableride.errors import ValidationError
from stableride.services.enhancements import to_money
from stableride.services.geofence import haversine_km

KM_PER_MILE = 1.609344

# ---------------------------------------------------------------------------
# Rates (USD)
# ---------------------------------------------------------------------------
ONE_WAY_BASE_RATE = Decimal("25.00")
ONE_WAY_PER_MILE = Decimal("2.50")
ONE_WAY_MINIMUM_FARE = Decimal("35.00")
MAXIMUM_DISTANCE_MILES = 100

ROUNDTRIP_MULTIPLIER = Decimal("1.8")
ROUNDTRIP_WAIT_RATE = Decimal("30.00")
ROUNDTRIP_FREE_WAIT_HOURS = 2
SAME_DAY_DISCOUNT = Decimal("0.10")

HOURLY_RATE = Decimal("75.00")
HOURLY_MINIMUM_HOURS = 2

LATE_NIGHT_SURCHARGE = Decimal("20.00")
LATE_NIGHT_START = 22
LATE_NIGHT_END = 6

SALES_TAX_RATE = Decimal("0.08375")


def distance_miles(pickup_lat: float, pickup_lng: float, dropoff_lat: float, dropoff_lng: float) -> float:
    return haversine_km(pickup_lat, pickup_lng, dropoff_lat, dropoff_lng) / KM_PER_MILE


def is_late_night(at: datetime) -> bool:
    return at.hour >= LATE_NIGHT_START or at.hour < LATE_NIGHT_END


def validate_trip(
    service_type: str,
    miles: float | None,
    scheduled_at: datetime,
    return_at: datetime | None = None,
    duration_hours: float | None = None,
) -> None:
    if service_type in ("ONE_WAY", "ROUNDTRIP") and miles is None:
        raise ValidationError("Dropoff location is required for this service type")
    if service_type == "ROUNDTRIP":
        if return_at is None:
            raise ValidationError("Return date/time is required for roundtrip service")
        if return_at <= scheduled_at:
            raise ValidationError("Return time must be after pickup time")
    if service_type == "HOURLY" and (duration_hours is None or duration_hours < HOURLY_MINIMUM_HOURS):
        raise ValidationError(f"Minimum {HOURLY_MINIMUM_HOURS} hours required for hourly service")
    if service_type == "ONE_WAY" and miles > MAXIMUM_DISTANCE_MILES:
        raise ValidationError(f"Distance exceeds maximum of {MAXIMUM_DISTANCE_MILES} miles")


def calculate_fare(
    service_type: str,
    scheduled_at: datetime,
    miles: float | None = None,
    return_at: datetime | None = None,
    duration_hours: float | None = None,
    holiday_percentage: Decimal | None = None,
) -> dict:
    """
    Returns the fare breakdown as Decimals:
      base_rate, distance_charge, time_charges, discounts, surcharges,
      subtotal, tax, total
    Tax applies to the subtotal after discounts and time-based surcharges.
    """
    validate_trip(service_type, miles, scheduled_at, return_at, duration_hours)

    discounts: list[dict] = []
    time_charges = Decimal("0")

    if service_type == "HOURLY":
        base_rate = HOURLY_RATE * Decimal(str(duration_hours))
        distance_charge = Decimal("0")
    else:
        base_rate = ONE_WAY_BASE_RATE
        distance_charge = ONE_WAY_PER_MILE * Decimal(str(miles))
        if base_rate + distance_charge < ONE_WAY_MINIMUM_FARE:
            distance_charge = ONE_WAY_MINIMUM_FARE - base_rate

        if service_type == "ROUNDTRIP":
            base_rate *= ROUNDTRIP_MULTIPLIER
            distance_charge *= ROUNDTRIP_MULTIPLIER
            wait_hours = Decimal(str((return_at - scheduled_at).total_seconds() / 3600))
            if wait_hours > ROUNDTRIP_FREE_WAIT_HOURS:
                time_charges = (wait_hours - ROUNDTRIP_FREE_WAIT_HOURS) * ROUNDTRIP_WAIT_RATE
            if scheduled_at.date() == return_at.date():
                discounts.append({
                    "type": "same_day",
                    "name": "Same Day Roundtrip",
                    "amount": to_money((base_rate + distance_charge) * SAME_DAY_DISCOUNT),
                })

    fare = base_rate + distance_charge + time_charges - sum((d["amount"] for d in discounts), Decimal("0"))

    surcharges: list[dict] = []
    if is_late_night(scheduled_at):
        surcharges.append({"type": "late_night", "name": "Late Night", "amount": LATE_NIGHT_SURCHARGE})
    if holiday_percentage:
        surcharges.append({
            "type": "holiday",
            "name": "Holiday",
            "amount": to_money(fare * Decimal(str(holiday_percentage)) / Decimal("100")),
        })

    subtotal = to_money(fare + sum((s["amount"] for s in surcharges), Decimal("0")))
    tax = to_money(subtotal * SALES_TAX_RATE)
    return {
        "base_rate": to_money(base_rate),
        "distance_charge": to_money(distance_charge),
        "time_charges": to_money(time_charges),
        "discounts": discounts,
        "surcharges": surcharges,
        "subtotal": subtotal,
        "tax": tax,
        "total": to_money(subtotal + tax),
    }
