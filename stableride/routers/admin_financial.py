"""
Admin financial: /api/admin/financial
  GET  /reconciliation                  POST /payments/{id}/reconcile
  GET  /metrics                         GET  /refunds
  POST /payments/{id}/refund
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.middleware.auth import require_permission
from stableride.models.admin import AdminUser
from stableride.schemas.schemas import ReconciliationReport, FinancialMetrics, PaymentResponse, RefundRequest
from stableride.services import audit
from stableride.services.financial import get_metrics, list_refunds, process_refund
from stableride.services.payment import StripeClient, get_stripe_client
from stableride.services.reconciliation import build_report, mark_reconciled

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/admin/financial", tags=["Admin: Financial"])

can_read = require_permission("financial:read")
can_write = require_permission("financial:write")


@router.get("/reconciliation", response_model=ReconciliationReport, dependencies=[Depends(can_read)])
async def reconciliation_report(
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    report = await build_report(
        db, stripe, tolerance=settings.reconciliation_tolerance, currency=settings.stripe_currency, limit=limit,
    )
    if report["discrepancies"]:
        logger.warning("Reconciliation found %d discrepancies", len(report["discrepancies"]))
    return ReconciliationReport(**report)


@router.post("/payments/{payment_id}/reconcile", response_model=PaymentResponse)
async def reconcile_payment(
    payment_id: str,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
):
    payment, changed = await mark_reconciled(db, payment_id, admin.id)
    if changed:
        audit.record(db, admin.id, "reconcile", "payment", payment.id)
        await db.commit()
    return PaymentResponse.model_validate(payment)


@router.get("/metrics", response_model=FinancialMetrics, dependencies=[Depends(can_read)])
async def metrics(db: AsyncSession = Depends(get_db)):
    return FinancialMetrics(**await get_metrics(db))


@router.get("/refunds", response_model=list[PaymentResponse], dependencies=[Depends(can_read)])
async def refunds(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return [PaymentResponse.model_validate(p) for p in await list_refunds(db, limit, offset)]


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    payload: RefundRequest,
    admin: AdminUser = Depends(can_write),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    payment = await process_refund(
        db, stripe, payment_id, amount=payload.amount, reason=payload.reason.value if payload.reason else None,
    )
    audit.record(db, admin.id, "refund", "payment", payment.id, {"amount": float(payment.refund_amount)})
    await db.commit()
    return PaymentResponse.model_validate(payment)
