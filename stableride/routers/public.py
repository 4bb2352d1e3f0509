"""
Public (unauthenticated) lookups:
  POST /api/locations/check-availability
  GET  /api/policies/{key}
  GET  /api/business-hours/status
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.models.policy import Policy
from stableride.schemas.schemas import (
    LocationCheckRequest, AvailabilityResponse, PublicPolicyResponse, BusinessStatusResponse,
)
from stableride.services.business_hours import status_at
from stableride.services.geofence import check_availability, calculate_surcharge
from stableride.services.quotes import load_active_areas

router = APIRouter(prefix="/api", tags=["Public"])


@router.post("/locations/check-availability", response_model=AvailabilityResponse)
async def check_location(payload: LocationCheckRequest, db: AsyncSession = Depends(get_db)):
    areas = await load_active_areas(db)
    result = check_availability(areas, payload.lat, payload.lng)
    if payload.amount is not None:
        result["surcharge"] = calculate_surcharge(areas, payload.lat, payload.lng, payload.amount)
    return AvailabilityResponse(**result)


@router.get("/policies/{key}", response_model=PublicPolicyResponse)
async def get_published_policy(key: str, db: AsyncSession = Depends(get_db)):
    policy = (
        await db.execute(select(Policy).where(Policy.key == key, Policy.is_published.is_(True)))
    ).scalar_one_or_none()
    if not policy:
        raise HTTPException(status_code=404, detail="Policy not found")
    return PublicPolicyResponse.model_validate(policy)


@router.get("/business-hours/status", response_model=BusinessStatusResponse)
async def business_status(
    at: datetime | None = Query(default=None, description="Defaults to now (UTC)"),
    db: AsyncSession = Depends(get_db),
):
    return BusinessStatusResponse(**await status_at(db, at or datetime.now(timezone.utc)))
