"""
Revenue metrics and refunds for the finance back-office.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.errors import NotFoundError, ValidationError
from stableride.models.booking import Booking
from stableride.models.payment import Payment
from stableride.services.enhancements import to_money
from stableride.services.payment import StripeClient

logger = logging.getLogger(__name__)


async def _revenue_since(db: AsyncSession, since: datetime) -> Decimal:
    total = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.status == "COMPLETED", Payment.created_at >= since)
        )
    ).scalar()
    return to_money(total or 0)


async def get_metrics(db: AsyncSession, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    counts = await db.execute(select(Payment.status, func.count()).group_by(Payment.status))
    refunded = (
        await db.execute(select(func.coalesce(func.sum(Payment.refund_amount), 0)))
    ).scalar()
    return {
        "revenue": {
            "today": await _revenue_since(db, start_of_day),
            "week": await _revenue_since(db, start_of_day - timedelta(days=7)),
            "month": await _revenue_since(db, start_of_day - timedelta(days=30)),
        },
        "transactions": {status: n for status, n in counts.all()},
        "refunded_total": to_money(refunded or 0),
    }


async def list_refunds(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.refund_id.is_not(None))
        .order_by(Payment.updated_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def process_refund(
    db: AsyncSession,
    stripe: StripeClient,
    payment_id: str,
    amount: Decimal | None = None,
    reason: str | None = None,
) -> Payment:
    """
    Refund all or part of a completed payment through Stripe. The payment is
    marked REFUNDED and its booking cancelled.
    """
    result = await db.execute(select(Payment).where(Payment.id == payment_id).with_for_update())
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.status != "COMPLETED":
        raise ValidationError("Only completed payments can be refunded")
    if not payment.stripe_payment_intent_id:
        raise ValidationError("Payment has no Stripe payment intent")

    refund_amount = to_money(amount) if amount is not None else to_money(payment.amount)
    if refund_amount <= 0 or refund_amount > to_money(payment.amount):
        raise ValidationError("Refund amount must be positive and not exceed the payment amount")

    refund = await stripe.create_refund(
        payment.stripe_payment_intent_id,
        amount=refund_amount,
        reason=reason,
        idempotency_key=f"refund-{payment.id}",
    )

    payment.status = "REFUNDED"
    payment.refund_id = refund.get("id")
    payment.refund_amount = refund_amount

    booking = (
        await db.execute(select(Booking).where(Booking.id == payment.booking_id))
    ).scalar_one_or_none()
    if booking and booking.status not in ("COMPLETED", "CANCELLED"):
        booking.status = "CANCELLED"

    await db.commit()
    await db.refresh(payment)
    logger.info("Refunded %s on payment %s (refund=%s)", refund_amount, payment.id, payment.refund_id)
    return payment
