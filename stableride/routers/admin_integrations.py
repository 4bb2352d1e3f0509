"""
Admin integrations: /api/admin/integrations
"""
import logging
from collections import Counter
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.integration import Integration
from stableride.schemas.schemas import (
    IntegrationCreate, IntegrationUpdate, IntegrationResponse, IntegrationOverview, IntegrationTestResult,
)
from stableride.services import audit
from stableride.services.integrations import (
    encrypt_config, decrypt_config, mask_config, validate_config, check_connection,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/integrations", tags=["Admin: Integrations"])

can_read = require_permission("configuration:read")
can_write = require_permission("configuration:write")


def to_response(integration: Integration) -> IntegrationResponse:
    """Secrets never leave the server unmasked."""
    return IntegrationResponse(
        id=integration.id,
        name=integration.name,
        provider=integration.provider,
        environment=integration.environment,
        config=mask_config(decrypt_config(integration.encrypted_config)),
        is_active=integration.is_active,
        last_tested_at=integration.last_tested_at,
        last_test_status=integration.last_test_status,
        created_at=integration.created_at,
        updated_at=integration.updated_at,
    )


async def _get(db: AsyncSession, integration_id: str) -> Integration:
    integration = (
        await db.execute(select(Integration).where(Integration.id == integration_id))
    ).scalar_one_or_none()
    if not integration:
        raise HTTPException(status_code=404, detail="Integration not found")
    return integration


@router.get("/overview", response_model=IntegrationOverview, dependencies=[Depends(can_read)])
async def overview(db: AsyncSession = Depends(get_db)):
    integrations = list((await db.execute(select(Integration))).scalars().all())
    return IntegrationOverview(
        total=len(integrations),
        active=sum(1 for i in integrations if i.is_active),
        by_provider=dict(Counter(i.provider for i in integrations)),
    )


@router.get("", response_model=list[IntegrationResponse], dependencies=[Depends(can_read)])
async def list_integrations(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Integration).order_by(Integration.provider, Integration.name))
    return [to_response(i) for i in result.scalars().all()]


@router.get("/{integration_id}", response_model=IntegrationResponse, dependencies=[Depends(can_read)])
async def get_integration(integration_id: str, db: AsyncSession = Depends(get_db)):
    return to_response(await _get(db, integration_id))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=IntegrationResponse)
async def create_integration(
    payload: IntegrationCreate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    validate_config(payload.provider.value, payload.config)
    integration = Integration(
        name=payload.name,
        provider=payload.provider.value,
        environment=payload.environment.value,
        encrypted_config=encrypt_config(payload.config),
        is_active=payload.is_active,
        created_by=admin.id,
    )
    db.add(integration)
    await db.flush()
    audit.record(db, admin.id, "create", "integration", integration.id,
                 {"name": integration.name, "provider": integration.provider})
    await db.commit()
    await db.refresh(integration)
    return to_response(integration)


@router.put("/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    integration_id: str,
    payload: IntegrationUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """A partial config is merged into the stored one; masked values sent back unchanged are ignored."""
    integration = await _get(db, integration_id)
    changes = payload.model_dump(exclude_unset=True)

    if payload.config is not None:
        submitted = {k: v for k, v in payload.config.items() if not (isinstance(v, str) and v.startswith("****"))}
        merged = {**decrypt_config(integration.encrypted_config), **submitted}
        validate_config(integration.provider, merged)
        integration.encrypted_config = encrypt_config(merged)
    if payload.name is not None:
        integration.name = payload.name
    if payload.environment is not None:
        integration.environment = payload.environment.value
    if payload.is_active is not None:
        integration.is_active = payload.is_active

    audit.record(db, admin.id, "update", "integration", integration.id, {"fields": sorted(changes)})
    await db.commit()
    await db.refresh(integration)
    return to_response(integration)


@router.patch("/{integration_id}/toggle", response_model=IntegrationResponse)
async def toggle_integration(
    integration_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    integration = await _get(db, integration_id)
    integration.is_active = not integration.is_active
    audit.record(db, admin.id, "toggle", "integration", integration.id, {"is_active": integration.is_active})
    await db.commit()
    await db.refresh(integration)
    return to_response(integration)


@router.post("/{integration_id}/test", response_model=IntegrationTestResult)
async def test_integration(
    integration_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    integration = await _get(db, integration_id)
    result = await check_connection(integration.provider, decrypt_config(integration.encrypted_config))

    integration.last_tested_at = datetime.now(timezone.utc)
    integration.last_test_status = "success" if result["success"] else "failed"
    audit.record(db, admin.id, "test", "integration", integration.id,
                 {"success": result["success"], "message": result["message"]})
    await db.commit()
    logger.info("Integration %s test: %s", integration.id, integration.last_test_status)
    return IntegrationTestResult(**result)


@router.delete("/{integration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_integration(
    integration_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    integration = await _get(db, integration_id)
    await db.delete(integration)
    audit.record(db, admin.id, "delete", "integration", integration_id, {"name": integration.name})
    await db.commit()
