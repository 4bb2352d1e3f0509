"""
Payment reconciliation: compare completed local payments with the amounts
Stripe actually recorded on their payment intents.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.errors import NotFoundError, ValidationError
from stableride.models.payment import Payment
from stableride.services.booking_state import as_utc
from stableride.services.enhancements import to_money
from stableride.services.payment import StripeClient, StripeError, PSPError, from_cents

logger = logging.getLogger(__name__)

RECONCILIATION_INTERVAL = timedelta(hours=24)


def find_discrepancies(payments: list, provider_amounts: dict[str, Decimal | None], tolerance) -> dict:
    """
    `provider_amounts` maps payment intent id -> amount Stripe reports, or None
    when the intent could not be fetched. Only differences strictly greater
    than the tolerance are flagged; unfetched intents are reported as
    unverified instead.
    """
    tolerance = Decimal(str(tolerance))
    discrepancies = []
    unverified = []
    matched = 0
    for payment in payments:
        intent_id = payment.stripe_payment_intent_id
        provider_amount = provider_amounts.get(intent_id) if intent_id else None
        if provider_amount is None:
            unverified.append(payment.id)
            continue
        local_amount = Decimal(str(payment.amount))
        difference = provider_amount - local_amount
        if abs(difference) > tolerance:
            discrepancies.append({
                "payment_id": payment.id,
                "booking_id": payment.booking_id,
                "stripe_payment_intent_id": intent_id,
                "local_amount": to_money(local_amount),
                "provider_amount": to_money(provider_amount),
                "difference": to_money(difference),
            })
        else:
            matched += 1
    return {"matched": matched, "discrepancies": discrepancies, "unverified": unverified}


def _sum_balance(entries: list[dict], currency: str) -> Decimal:
    return from_cents(sum(e.get("amount", 0) for e in entries if e.get("currency", currency) == currency))


async def fetch_balance(stripe: StripeClient, currency: str) -> dict | None:
    try:
        balance = await stripe.retrieve_balance()
    except (StripeError, PSPError) as e:
        logger.warning("Could not fetch Stripe balance: %s", e.message)
        return None
    return {
        "available": _sum_balance(balance.get("available", []), currency),
        "pending": _sum_balance(balance.get("pending", []), currency),
        "currency": currency,
    }


async def build_report(db: AsyncSession, stripe: StripeClient, tolerance, currency: str, limit: int = 100) -> dict:
    result = await db.execute(
        select(Payment)
        .where(Payment.status == "COMPLETED")
        .order_by(Payment.created_at.desc())
        .limit(limit)
    )
    payments = list(result.scalars().all())

    provider_amounts: dict[str, Decimal | None] = {}
    for payment in payments:
        intent_id = payment.stripe_payment_intent_id
        if not intent_id or intent_id in provider_amounts:
            continue
        try:
            intent = await stripe.retrieve_payment_intent(intent_id)
        except (StripeError, PSPError) as e:
            logger.warning("Could not fetch payment intent %s: %s", intent_id, e.message)
            provider_amounts[intent_id] = None
            continue
        cents = intent.get("amount_received") or intent.get("amount") or 0
        provider_amounts[intent_id] = from_cents(cents)

    comparison = find_discrepancies(payments, provider_amounts, tolerance)

    counts = await db.execute(
        select(Payment.reconciled, func.count())
        .where(Payment.status == "COMPLETED")
        .group_by(Payment.reconciled)
    )
    by_flag = {bool(flag): n for flag, n in counts.all()}
    last = (await db.execute(select(func.max(Payment.reconciled_at)))).scalar()
    last = as_utc(last) if last else None
    now = datetime.now(timezone.utc)

    local_total = sum((Decimal(str(p.amount)) for p in payments), Decimal("0"))
    return {
        "balance": await fetch_balance(stripe, currency),
        "local_total": to_money(local_total),
        "checked": len(payments),
        "matched": comparison["matched"],
        "discrepancies": comparison["discrepancies"],
        "unverified": comparison["unverified"],
        "reconciled_count": by_flag.get(True, 0),
        "unreconciled_count": by_flag.get(False, 0),
        "last_reconciled_at": last,
        "next_reconciliation_at": (last or now) + RECONCILIATION_INTERVAL,
    }


async def mark_reconciled(db: AsyncSession, payment_id: str, admin_id: str) -> tuple[Payment, bool]:
    """
    Idempotent: a payment already reconciled keeps its original admin and
    time. Returns the payment and whether this call changed it.
    """
    result = await db.execute(select(Payment).where(Payment.id == payment_id).with_for_update())
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.status != "COMPLETED":
        raise ValidationError("Only completed payments can be reconciled")
    if payment.reconciled:
        return payment, False

    payment.reconciled = True
    payment.reconciled_at = datetime.now(timezone.utc)
    payment.reconciled_by = admin_id
    await db.commit()
    await db.refresh(payment)
    logger.info("Payment %s reconciled by %s", payment.id, admin_id)
    return payment, True
