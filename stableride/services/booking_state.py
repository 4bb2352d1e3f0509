"""
Booking status transitions.
"""
from datetime import datetime, timedelta, timezone

from stableride.errors import InvalidTransitionError, ValidationError

VALID_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"CONFIRMED", "CANCELLED"},
    "CONFIRMED": {"IN_PROGRESS", "CANCELLED"},
    "IN_PROGRESS": {"COMPLETED", "CANCELLED"},
    "COMPLETED": set(),
    "CANCELLED": set(),
}

CANCELLABLE_BY_CUSTOMER = {"PENDING", "CONFIRMED"}
CANCELLATION_CUTOFF = timedelta(hours=24)


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, set())


def ensure_transition(current: str, new: str) -> None:
    if not can_transition(current, new):
        raise InvalidTransitionError(current, new)


def as_utc(value: datetime) -> datetime:
    """Databases without timezone support hand back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ensure_customer_can_cancel(status: str, scheduled_at: datetime, now: datetime | None = None) -> None:
    if status not in CANCELLABLE_BY_CUSTOMER:
        raise ValidationError(f"Cannot cancel a booking that is {status}")
    now = now or datetime.now(timezone.utc)
    if as_utc(scheduled_at) - now < CANCELLATION_CUTOFF:
        raise ValidationError("Bookings cannot be cancelled within 24 hours of pickup")
