"""
Enhancement cost calculator.

Every add-on is priced independently and the total is the plain sum of the
enabled line items. Flat fees and per-unit fees come from the tables below;
the vehicle upgrade is a multiplier applied to the booking amount.
"""
from decimal import Decimal, ROUND_HALF_UP

from stableride.errors import ValidationError

CENTS = Decimal("0.01")

# ---------------------------------------------------------------------------
# Price tables (USD)
# ---------------------------------------------------------------------------
TRIP_PROTECTION_FEE = Decimal("9.00")
MEET_AND_GREET_FEE = Decimal("15.00")
EXTRA_LUGGAGE_FEE = Decimal("5.00")
INCLUDED_BAGS = 2
SPECIAL_HANDLING_FEE = Decimal("10.00")
CHILD_SEAT_FEE = Decimal("15.00")
ADDITIONAL_STOP_FEE = Decimal("10.00")

SPECIAL_HANDLING_ITEMS = ("golf_clubs", "ski_equipment", "musical_instruments", "fragile_items")

VEHICLE_MULTIPLIERS: dict[str, Decimal] = {
    "standard": Decimal("1.00"),
    "eco_friendly": Decimal("1.00"),
    "suv": Decimal("1.15"),
    "luxury_sedan": Decimal("1.25"),
    "executive": Decimal("1.50"),
}

VEHICLE_OPTIONS = [
    {
        "type": "standard",
        "name": "Standard Sedan",
        "description": "Comfortable sedan for up to 3 passengers",
        "capacity": 3,
        "features": ["Air conditioning", "Phone charger"],
    },
    {
        "type": "eco_friendly",
        "name": "Eco-Friendly",
        "description": "Hybrid or electric vehicle",
        "capacity": 3,
        "features": ["Low emissions", "Quiet ride"],
    },
    {
        "type": "suv",
        "name": "SUV",
        "description": "Spacious SUV for groups and extra luggage",
        "capacity": 6,
        "features": ["Extra luggage space", "Third-row seating"],
    },
    {
        "type": "luxury_sedan",
        "name": "Luxury Sedan",
        "description": "Premium sedan with leather interior",
        "capacity": 3,
        "features": ["Leather seats", "Bottled water", "Wi-Fi"],
    },
    {
        "type": "executive",
        "name": "Executive",
        "description": "Top-tier vehicle with professional chauffeur",
        "capacity": 3,
        "features": ["Leather seats", "Refreshments", "Wi-Fi", "Privacy partition"],
    },
]

ENHANCEMENT_OPTIONS = [
    {"category": "trip_protection", "id": "trip_protection", "name": "Trip Protection",
     "description": "Free cancellation up to 2 hours before pickup", "price": TRIP_PROTECTION_FEE, "unit": "flat"},
    {"category": "luggage", "id": "meet_and_greet", "name": "Meet & Greet",
     "description": "Driver meets you inside the terminal with a sign", "price": MEET_AND_GREET_FEE, "unit": "flat"},
    {"category": "luggage", "id": "extra_luggage", "name": "Extra Luggage",
     "description": f"Per bag beyond the {INCLUDED_BAGS} included", "price": EXTRA_LUGGAGE_FEE, "unit": "per_bag"},
    {"category": "luggage", "id": "special_handling", "name": "Special Handling",
     "description": "Golf clubs, skis, instruments or fragile items", "price": SPECIAL_HANDLING_FEE, "unit": "per_item"},
    {"category": "child_safety", "id": "child_seat", "name": "Child Seat",
     "description": "Infant, toddler or booster seat", "price": CHILD_SEAT_FEE, "unit": "per_seat"},
    {"category": "stops", "id": "additional_stop", "name": "Additional Stop",
     "description": "Extra stop along the route", "price": ADDITIONAL_STOP_FEE, "unit": "per_stop"},
]


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _count(value, field: str) -> int:
    count = int(value or 0)
    if count < 0:
        raise ValidationError(f"{field} cannot be negative")
    return count


def list_enhancement_options(category: str | None = None) -> list[dict]:
    if category is None:
        return list(ENHANCEMENT_OPTIONS)
    return [o for o in ENHANCEMENT_OPTIONS if o["category"] == category]


def calculate_enhancement_cost(amount, enhancements: dict | None) -> dict:
    """
    Price the selected add-ons for a booking of the given amount.

    `enhancements` mirrors the request body:
      trip_protection: bool
      luggage: {meet_and_greet: bool, bag_count: int, special_items: [str]}
      vehicle_upgrade: str
      child_seats: {infant: int, toddler: int, booster: int}
      additional_stops: int

    Returns per-category costs, the total, and a breakdown that lists only
    the non-zero items in a fixed order.
    """
    base = Decimal(str(amount))
    if base < 0:
        raise ValidationError("Booking amount cannot be negative")
    enhancements = enhancements or {}

    breakdown: list[dict] = []

    def add(item: str, cost: Decimal) -> Decimal:
        cost = to_money(cost)
        if cost > 0:
            breakdown.append({"item": item, "cost": cost})
        return cost

    # Trip protection
    trip_protection = add(
        "Trip Protection", TRIP_PROTECTION_FEE if enhancements.get("trip_protection") else Decimal("0")
    )

    # Luggage
    luggage_opts = enhancements.get("luggage") or {}
    luggage = Decimal("0")
    if luggage_opts.get("meet_and_greet"):
        luggage += add("Meet & Greet", MEET_AND_GREET_FEE)
    bags = _count(luggage_opts.get("bag_count"), "bag_count")
    luggage += add("Extra Luggage", EXTRA_LUGGAGE_FEE * max(bags - INCLUDED_BAGS, 0))
    special_items = luggage_opts.get("special_items") or []
    unknown = [i for i in special_items if i not in SPECIAL_HANDLING_ITEMS]
    if unknown:
        raise ValidationError(f"Unknown special handling item: {unknown[0]}")
    luggage += add("Special Handling", SPECIAL_HANDLING_FEE * len(special_items))

    # Vehicle upgrade
    vehicle_type = enhancements.get("vehicle_upgrade")
    vehicle_upgrade = Decimal("0")
    if vehicle_type:
        multiplier = VEHICLE_MULTIPLIERS.get(vehicle_type)
        if multiplier is None:
            raise ValidationError(f"Unknown vehicle type: {vehicle_type}")
        name = next(v["name"] for v in VEHICLE_OPTIONS if v["type"] == vehicle_type)
        vehicle_upgrade = add(f"Vehicle Upgrade ({name})", base * (multiplier - 1))

    # Child seats
    seats = enhancements.get("child_seats") or {}
    seat_count = sum(_count(seats.get(kind), kind) for kind in ("infant", "toddler", "booster"))
    child_seats = add("Child Seats", CHILD_SEAT_FEE * seat_count)

    # Additional stops
    stops = _count(enhancements.get("additional_stops"), "additional_stops")
    additional_stops = add("Additional Stops", ADDITIONAL_STOP_FEE * stops)

    total = to_money(trip_protection + luggage + vehicle_upgrade + child_seats + additional_stops)
    return {
        "trip_protection": trip_protection,
        "luggage": to_money(luggage),
        "vehicle_upgrade": vehicle_upgrade,
        "child_seats": child_seats,
        "additional_stops": additional_stops,
        "total": total,
        "breakdown": breakdown,
    }
