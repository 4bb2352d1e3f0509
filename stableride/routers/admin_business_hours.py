"""
Admin business hours and holidays: /api/admin/business-hours
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.business_hours import BusinessHours, Holiday
from stableride.schemas.schemas import (
    BusinessHoursResponse, BusinessHoursUpdate, BusinessHoursBulkUpdate, HolidayCreate, HolidayResponse,
)
from stableride.services import audit
from stableride.services.business_hours import ensure_defaults, validate_window

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/business-hours", tags=["Admin: Business Hours"])

can_read = require_permission("configuration:read")
can_write = require_permission("configuration:write")


def _apply(hours: BusinessHours, changes: BusinessHoursUpdate) -> None:
    for field, value in changes.model_dump(exclude_unset=True, exclude={"day_of_week"}).items():
        setattr(hours, field, value)
    if not hours.is_closed:
        validate_window(hours.open_time, hours.close_time)


@router.get("", response_model=list[BusinessHoursResponse], dependencies=[Depends(can_read)])
async def list_hours(db: AsyncSession = Depends(get_db)):
    return [BusinessHoursResponse.model_validate(h) for h in await ensure_defaults(db)]


@router.put("", response_model=list[BusinessHoursResponse])
async def bulk_update(
    payload: BusinessHoursBulkUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    rows = {h.day_of_week: h for h in await ensure_defaults(db)}
    for item in payload.days:
        _apply(rows[item.day_of_week], item)
    audit.record(db, admin.id, "bulk_update", "business_hours", None,
                 {"days": [d.day_of_week for d in payload.days]})
    await db.commit()
    return [BusinessHoursResponse.model_validate(h) for h in await ensure_defaults(db)]


@router.get("/holidays", response_model=list[HolidayResponse], dependencies=[Depends(can_read)])
async def list_holidays(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Holiday).order_by(Holiday.date))
    return [HolidayResponse.model_validate(h) for h in result.scalars().all()]


@router.post("/holidays", status_code=status.HTTP_201_CREATED, response_model=HolidayResponse)
async def create_holiday(
    payload: HolidayCreate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    if (await db.execute(select(Holiday.id).where(Holiday.date == payload.date))).first():
        raise HTTPException(status_code=400, detail=f"A holiday already exists on {payload.date}")
    if payload.open_time and not payload.is_closed:
        validate_window(payload.open_time, payload.close_time)

    holiday = Holiday(**payload.model_dump(), created_by=admin.id)
    db.add(holiday)
    await db.flush()
    audit.record(db, admin.id, "create", "holiday", holiday.id,
                 {"name": holiday.name, "date": payload.date.isoformat()})
    await db.commit()
    await db.refresh(holiday)
    return HolidayResponse.model_validate(holiday)


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    holiday = (await db.execute(select(Holiday).where(Holiday.id == holiday_id))).scalar_one_or_none()
    if not holiday:
        raise HTTPException(status_code=404, detail="Holiday not found")
    await db.delete(holiday)
    audit.record(db, admin.id, "delete", "holiday", holiday_id, {"name": holiday.name})
    await db.commit()


@router.put("/{day_of_week}", response_model=BusinessHoursResponse)
async def update_day(
    payload: BusinessHoursUpdate,
    day_of_week: int = Path(..., ge=0, le=6),
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    rows = {h.day_of_week: h for h in await ensure_defaults(db)}
    hours = rows[day_of_week]
    _apply(hours, payload)
    audit.record(db, admin.id, "update", "business_hours", hours.id, {"day_of_week": day_of_week})
    await db.commit()
    await db.refresh(hours)
    return BusinessHoursResponse.model_validate(hours)
