"""
Admin policies: /api/admin/policies
"""
import logging
from collections import Counter
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.models.policy import Policy, PolicyVersion
from stableride.schemas.schemas import (
    PolicyCreate, PolicyUpdate, PolicyResponse, PolicyVersionResponse, PolicyOverview, PolicyCategoryEnum,
)
from stableride.services import audit
from stableride.services.policies import next_version, parse_version

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/policies", tags=["Admin: Policies"])

can_read = require_permission("content:read")
can_write = require_permission("content:write")


async def _get(db: AsyncSession, policy_id: str) -> Policy:
    policy = (await db.execute(select(Policy).where(Policy.id == policy_id))).scalar_one_or_none()
    if not policy:
        raise HTTPException(status_code=404, detail="Policy not found")
    return policy


@router.get("/overview", response_model=PolicyOverview, dependencies=[Depends(can_read)])
async def overview(db: AsyncSession = Depends(get_db)):
    policies = list((await db.execute(select(Policy))).scalars().all())
    published = sum(1 for p in policies if p.is_published)
    return PolicyOverview(
        total=len(policies),
        published=published,
        drafts=len(policies) - published,
        by_category=dict(Counter(p.category for p in policies)),
    )


@router.get("", response_model=list[PolicyResponse], dependencies=[Depends(can_read)])
async def list_policies(category: PolicyCategoryEnum | None = None, db: AsyncSession = Depends(get_db)):
    query = select(Policy).order_by(Policy.category, Policy.key)
    if category:
        query = query.where(Policy.category == category.value)
    return [PolicyResponse.model_validate(p) for p in (await db.execute(query)).scalars().all()]


@router.get("/{policy_id}", response_model=PolicyResponse, dependencies=[Depends(can_read)])
async def get_policy(policy_id: str, db: AsyncSession = Depends(get_db)):
    return PolicyResponse.model_validate(await _get(db, policy_id))


@router.get("/{policy_id}/history", response_model=list[PolicyVersionResponse], dependencies=[Depends(can_read)])
async def policy_history(policy_id: str, db: AsyncSession = Depends(get_db)):
    await _get(db, policy_id)
    result = await db.execute(select(PolicyVersion).where(PolicyVersion.policy_id == policy_id))
    versions = sorted(result.scalars().all(), key=lambda v: parse_version(v.version), reverse=True)
    return [PolicyVersionResponse.model_validate(v) for v in versions]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PolicyResponse)
async def create_policy(
    payload: PolicyCreate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    if (await db.execute(select(Policy.id).where(Policy.key == payload.key))).first():
        raise HTTPException(status_code=400, detail=f"Policy with key '{payload.key}' already exists")

    effective = payload.effective_date or datetime.now(timezone.utc)
    policy = Policy(
        key=payload.key,
        title=payload.title,
        category=payload.category.value,
        content=payload.content,
        version=payload.version,
        effective_date=effective,
        requires_acceptance=payload.requires_acceptance,
        created_by=admin.id,
    )
    db.add(policy)
    await db.flush()
    db.add(PolicyVersion(
        policy_id=policy.id,
        version=policy.version,
        content=policy.content,
        change_summary="Initial version",
        effective_date=effective,
        created_by=admin.id,
    ))
    audit.record(db, admin.id, "create", "policy", policy.id, {"key": policy.key, "version": policy.version})
    await db.commit()
    await db.refresh(policy)
    return PolicyResponse.model_validate(policy)


@router.put("/{policy_id}", response_model=PolicyResponse)
async def update_policy(
    policy_id: str,
    payload: PolicyUpdate,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    """A content change appends a version; without an explicit version the minor number is bumped."""
    policy = await _get(db, policy_id)

    if payload.title is not None:
        policy.title = payload.title
    if payload.requires_acceptance is not None:
        policy.requires_acceptance = payload.requires_acceptance
    if payload.effective_date is not None:
        policy.effective_date = payload.effective_date

    if payload.content is not None and payload.content != policy.content:
        policy.version = next_version(policy.version, payload.version)
        policy.content = payload.content
        db.add(PolicyVersion(
            policy_id=policy.id,
            version=policy.version,
            content=policy.content,
            change_summary=payload.change_summary,
            effective_date=policy.effective_date,
            created_by=admin.id,
        ))

    audit.record(db, admin.id, "update", "policy", policy.id, {"version": policy.version})
    await db.commit()
    await db.refresh(policy)
    return PolicyResponse.model_validate(policy)


@router.post("/{policy_id}/publish", response_model=PolicyResponse)
async def publish_policy(
    policy_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    policy = await _get(db, policy_id)
    policy.is_published = True
    policy.published_at = datetime.now(timezone.utc)
    audit.record(db, admin.id, "publish", "policy", policy.id, {"version": policy.version})
    await db.commit()
    await db.refresh(policy)
    return PolicyResponse.model_validate(policy)


@router.post("/{policy_id}/unpublish", response_model=PolicyResponse)
async def unpublish_policy(
    policy_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    policy = await _get(db, policy_id)
    policy.is_published = False
    audit.record(db, admin.id, "unpublish", "policy", policy.id)
    await db.commit()
    await db.refresh(policy)
    return PolicyResponse.model_validate(policy)


@router.delete("/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_policy(
    policy_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    policy = await _get(db, policy_id)
    await db.execute(delete(PolicyVersion).where(PolicyVersion.policy_id == policy.id))
    await db.delete(policy)
    audit.record(db, admin.id, "delete", "policy", policy_id, {"key": policy.key})
    await db.commit()
