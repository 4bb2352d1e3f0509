"""
Business hours and holiday lookups.
"""
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.errors import ValidationError
from stableride.models.business_hours import BusinessHours, Holiday

settings = get_settings()

DEFAULT_OPEN = "00:00"
DEFAULT_CLOSE = "23:59"
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def parse_hhmm(value: str) -> tuple[int, int]:
    try:
        hours, minutes = value.split(":")
        h, m = int(hours), int(minutes)
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    return h, m


def validate_window(open_time: str, close_time: str) -> None:
    if parse_hhmm(open_time) >= parse_hhmm(close_time):
        raise ValidationError("Open time must be before close time")


def day_of_week(at: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (at.weekday() + 1) % 7


async def ensure_defaults(db: AsyncSession) -> list[BusinessHours]:
    """Returns all seven weekdays, creating open-all-day rows on first read."""
    rows = list((await db.execute(select(BusinessHours).order_by(BusinessHours.day_of_week))).scalars().all())
    existing = {r.day_of_week for r in rows}
    missing = [d for d in range(7) if d not in existing]
    if missing:
        for day in missing:
            db.add(BusinessHours(
                day_of_week=day,
                open_time=DEFAULT_OPEN,
                close_time=DEFAULT_CLOSE,
                is_closed=False,
                timezone=settings.default_timezone,
            ))
        await db.commit()
        rows = list((await db.execute(select(BusinessHours).order_by(BusinessHours.day_of_week))).scalars().all())
    return rows


async def holiday_on(db: AsyncSession, at: datetime) -> Holiday | None:
    return (await db.execute(select(Holiday).where(Holiday.date == at.date()))).scalar_one_or_none()


def is_open_at(hours: BusinessHours | None, holiday: Holiday | None, at: datetime) -> tuple[bool, str]:
    """Holiday rows override the weekday schedule."""
    now = (at.hour, at.minute)
    if holiday is not None:
        if holiday.is_closed:
            return False, f"Closed for {holiday.name}"
        if holiday.open_time and holiday.close_time:
            is_open = parse_hhmm(holiday.open_time) <= now <= parse_hhmm(holiday.close_time)
            return is_open, f"Holiday hours for {holiday.name}"
    if hours is None:
        return True, "Open"
    if hours.is_closed:
        return False, f"Closed on {DAY_NAMES[hours.day_of_week]}"
    is_open = parse_hhmm(hours.open_time) <= now <= parse_hhmm(hours.close_time)
    return is_open, "Open" if is_open else f"Open {hours.open_time}-{hours.close_time}"


async def status_at(db: AsyncSession, at: datetime) -> dict:
    rows = await ensure_defaults(db)
    hours = next((r for r in rows if r.day_of_week == day_of_week(at)), None)
    holiday = await holiday_on(db, at)
    is_open, message = is_open_at(hours, holiday, at)
    return {
        "is_open": is_open,
        "message": message,
        "at": at,
        "holiday": holiday.name if holiday else None,
    }
