"""
Admin service areas: /api/admin/service-areas
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.service_area import ServiceArea
from stableride.schemas.schemas import (
    ServiceAreaCreate, ServiceAreaUpdate, ServiceAreaResponse, ServiceAreaOverview,
    LocationCheckRequest, AvailabilityResponse, ExportFormatEnum,
)
from stableride.services import audit
from stableride.services.geofence import (
    validate_area_shape, approximate_area_km2, find_overlaps, check_availability, calculate_surcharge, to_geojson,
)
from stableride.services.quotes import load_active_areas

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/service-areas", tags=["Admin: Service Areas"])

can_read = require_permission("configuration:read")
can_write = require_permission("configuration:write")


async def _all_areas(db: AsyncSession) -> list[ServiceArea]:
    return list((await db.execute(select(ServiceArea).order_by(ServiceArea.name))).scalars().all())


async def _get_area(db: AsyncSession, area_id: str) -> ServiceArea:
    area = (await db.execute(select(ServiceArea).where(ServiceArea.id == area_id))).scalar_one_or_none()
    if not area:
        raise HTTPException(status_code=404, detail="Service area not found")
    return area


@router.get("/overview", response_model=ServiceAreaOverview, dependencies=[Depends(can_read)])
async def overview(db: AsyncSession = Depends(get_db)):
    areas = await _all_areas(db)
    active = [a for a in areas if a.is_active]
    return ServiceAreaOverview(
        total=len(areas),
        active=len(active),
        with_surcharge=sum(1 for a in areas if a.surcharge_amount or a.surcharge_percentage),
        coverage_km2=round(sum(approximate_area_km2(a) for a in active), 2),
        overlapping=[list(pair) for pair in find_overlaps(active)],
    )


@router.get("", response_model=list[ServiceAreaResponse], dependencies=[Depends(can_read)])
async def list_areas(db: AsyncSession = Depends(get_db)):
    return [ServiceAreaResponse.model_validate(a) for a in await _all_areas(db)]


@router.get("/active", response_model=list[ServiceAreaResponse], dependencies=[Depends(can_read)])
async def list_active(db: AsyncSession = Depends(get_db)):
    return [ServiceAreaResponse.model_validate(a) for a in await load_active_areas(db)]


@router.get("/export", dependencies=[Depends(can_read)])
async def export_areas(
    export_format: ExportFormatEnum = Query(default=ExportFormatEnum.geojson, alias="format"),
    db: AsyncSession = Depends(get_db),
):
    if export_format != ExportFormatEnum.geojson:
        raise HTTPException(status_code=400, detail="Only GeoJSON export is supported")
    return to_geojson(await _all_areas(db))


@router.post("/check", response_model=AvailabilityResponse, dependencies=[Depends(can_read)])
async def check(payload: LocationCheckRequest, db: AsyncSession = Depends(get_db)):
    areas = await load_active_areas(db)
    result = check_availability(areas, payload.lat, payload.lng)
    if payload.amount is not None:
        result["surcharge"] = calculate_surcharge(areas, payload.lat, payload.lng, payload.amount)
    return AvailabilityResponse(**result)


@router.get("/{area_id}", response_model=ServiceAreaResponse, dependencies=[Depends(can_read)])
async def get_area(area_id: str, db: AsyncSession = Depends(get_db)):
    return ServiceAreaResponse.model_validate(await _get_area(db, area_id))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ServiceAreaResponse)
async def create_area(
    payload: ServiceAreaCreate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    center = payload.center.model_dump() if payload.center else None
    validate_area_shape(payload.polygon, center, payload.radius_km)

    area = ServiceArea(
        name=payload.name,
        description=payload.description,
        polygon=payload.polygon,
        center=center,
        radius_km=payload.radius_km,
        surcharge_amount=payload.surcharge_amount,
        surcharge_percentage=payload.surcharge_percentage,
        is_active=payload.is_active,
        restrictions=payload.restrictions,
        created_by=admin.id,
    )
    db.add(area)
    await db.flush()
    audit.record(db, admin.id, "create", "service_area", area.id, {"name": area.name})
    await db.commit()
    await db.refresh(area)
    return ServiceAreaResponse.model_validate(area)


@router.put("/{area_id}", response_model=ServiceAreaResponse)
async def update_area(
    area_id: str,
    payload: ServiceAreaUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    area = await _get_area(db, area_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(area, field, value)
    validate_area_shape(area.polygon, area.center, area.radius_km)

    audit.record(db, admin.id, "update", "service_area", area.id, {"fields": sorted(changes)})
    await db.commit()
    await db.refresh(area)
    return ServiceAreaResponse.model_validate(area)


@router.patch("/{area_id}/toggle", response_model=ServiceAreaResponse)
async def toggle_area(
    area_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    area = await _get_area(db, area_id)
    area.is_active = not area.is_active
    audit.record(db, admin.id, "toggle", "service_area", area.id, {"is_active": area.is_active})
    await db.commit()
    await db.refresh(area)
    return ServiceAreaResponse.model_validate(area)


@router.delete("/{area_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_area(
    area_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    area = await _get_area(db, area_id)
    await db.delete(area)
    audit.record(db, admin.id, "delete", "service_area", area_id, {"name": area.name})
    await db.commit()
