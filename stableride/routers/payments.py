"""
Payments router: POST /api/payments/intent, POST /api/payments/{id}/confirm,
                 GET /api/payments/{id}, GET /api/payments/booking/{booking_id},
                 POST /api/payments/webhook
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.config import get_settings
from stableride.database import get_db
from stableride.middleware.auth import get_current_customer
from stableride.middleware.idempotency import check_idempotency, store_idempotency_result
from stableride.middleware.rate_limit import payment_rate_limit
from stableride.models.booking import Booking
from stableride.models.payment import Payment
from stableride.models.user import User
from stableride.routers.bookings import get_owned_booking
from stableride.schemas.schemas import (
    PaymentIntentRequest, PaymentIntentResponse, PaymentConfirmRequest, PaymentResponse,
)
from stableride.services.booking_state import can_transition
from stableride.services.payment import (
    StripeClient, StripeError, get_stripe_client, map_intent_status, to_cents, from_cents, construct_event,
)

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/payments", tags=["Payments"])

PAYABLE_BOOKING_STATUSES = {"PENDING", "CONFIRMED"}


async def apply_status(db: AsyncSession, payment: Payment, new_status: str) -> None:
    """Set the payment status; a completed payment confirms a pending booking."""
    payment.status = new_status
    if new_status != "COMPLETED":
        return
    payment.failure_reason = None
    booking = (
        await db.execute(select(Booking).where(Booking.id == payment.booking_id).with_for_update())
    ).scalar_one_or_none()
    if booking and can_transition(booking.status, "CONFIRMED"):
        booking.status = "CONFIRMED"
        logger.info("Booking %s confirmed by payment %s", booking.id, payment.id)


async def get_owned_payment(db: AsyncSession, payment_id: str, user: User) -> Payment:
    payment = (await db.execute(select(Payment).where(Payment.id == payment_id))).scalar_one_or_none()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    if payment.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not your payment")
    return payment


def _intent_key(booking_id: str, amount, superseded_id: str | None) -> str:
    key = f"booking-{booking_id}-{to_cents(amount)}"
    return f"{key}-after-{superseded_id}" if superseded_id else key


async def ensure_stripe_customer(db: AsyncSession, stripe: StripeClient, user: User) -> str:
    if not user.stripe_customer_id:
        customer = await stripe.create_customer(
            email=user.email,
            name=f"{user.first_name} {user.last_name}",
            metadata={"user_id": user.id},
        )
        user.stripe_customer_id = customer["id"]
    return user.stripe_customer_id


@router.post("/intent", response_model=PaymentIntentResponse, dependencies=[Depends(payment_rate_limit)])
async def create_payment_intent(
    payload: PaymentIntentRequest,
    request: Request,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=128),
):
    """
    Create (or reuse) the Stripe PaymentIntent for a booking.
    - Amount always comes from the booking, never from the client.
    - A pending intent for the same amount is reused instead of duplicated.
    - A superseded intent is cancelled at Stripe before it is replaced.
    - Idempotent: repeated calls with the same key replay the first response.
    """
    # 1. Idempotency check
    if idempotency_key:
        cached = await check_idempotency(request, scope=user.id, fingerprint=payload.booking_id)
        if cached:
            return cached

    # Client keys are only unique per caller
    scoped_key = f"{user.id}:{idempotency_key}" if idempotency_key else None

    # 2. Load booking + existing payment record
    booking = await get_owned_booking(db, payload.booking_id, user, lock=True)
    if booking.status not in PAYABLE_BOOKING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot pay for a booking that is {booking.status}")

    payment = (
        await db.execute(select(Payment).where(Payment.booking_id == booking.id).with_for_update())
    ).scalar_one_or_none()
    if payment and payment.status in ("COMPLETED", "REFUNDED"):
        raise HTTPException(status_code=409, detail="Booking is already paid")

    amount = booking.total_amount
    intent = None
    superseded_id = None

    # 3. Reuse a still-usable intent, or cancel it when the total has changed
    if payment and payment.stripe_payment_intent_id:
        existing = await stripe.retrieve_payment_intent(payment.stripe_payment_intent_id)
        existing_status = existing.get("status", "")
        if existing_status in ("succeeded", "processing"):
            await apply_status(db, payment, map_intent_status(existing_status))
            await db.commit()
            raise HTTPException(status_code=409, detail=f"Booking payment is already {payment.status}")
        if existing_status.startswith("requires_"):
            if existing.get("amount") == to_cents(amount):
                intent = existing
                logger.info("Reusing payment intent %s for booking %s", existing["id"], booking.id)
            else:
                await stripe.cancel_payment_intent(existing["id"])
                superseded_id = existing["id"]
                logger.info("Cancelled superseded payment intent %s for booking %s", existing["id"], booking.id)

    # 4. Otherwise create a new one
    if intent is None:
        customer_id = await ensure_stripe_customer(db, stripe, user)
        intent = await stripe.create_payment_intent(
            amount=amount,
            currency=settings.stripe_currency,
            customer=customer_id,
            metadata={"booking_id": booking.id, "user_id": user.id, "reference": booking.reference},
            idempotency_key=scoped_key or _intent_key(booking.id, amount, superseded_id),
        )
        if payment is None:
            payment = Payment(booking_id=booking.id, user_id=user.id)
            db.add(payment)
        payment.amount = amount
        payment.currency = settings.stripe_currency
        payment.stripe_payment_intent_id = intent["id"]
        payment.stripe_customer_id = customer_id
        payment.failure_reason = None
        if scoped_key:
            payment.idempotency_key = scoped_key

    await apply_status(db, payment, map_intent_status(intent["status"]))
    await db.commit()
    await db.refresh(payment)

    response_body = {
        "payment_id": payment.id,
        "payment_intent_id": intent["id"],
        "client_secret": intent.get("client_secret"),
        "amount": float(payment.amount),
        "currency": payment.currency,
        "status": payment.status,
    }

    if idempotency_key:
        await store_idempotency_result(idempotency_key, user.id, payload.booking_id, 200, response_body)

    return PaymentIntentResponse(**response_body)


@router.post("/{payment_id}/confirm", response_model=PaymentResponse, dependencies=[Depends(payment_rate_limit)])
async def confirm_payment(
    payment_id: str,
    payload: PaymentConfirmRequest,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    payment = await get_owned_payment(db, payment_id, user)
    if payment.status == "COMPLETED":
        return PaymentResponse.model_validate(payment)
    if not payment.stripe_payment_intent_id:
        raise HTTPException(status_code=400, detail="Payment has no payment intent")

    try:
        intent = await stripe.confirm_payment_intent(payment.stripe_payment_intent_id, payload.payment_method_id)
    except StripeError as e:
        payment.failure_reason = e.message
        await db.commit()
        logger.warning("Payment %s confirmation declined: %s", payment.id, e.message)
        raise

    if payload.payment_method_id:
        payment.payment_method_id = payload.payment_method_id
    await apply_status(db, payment, map_intent_status(intent["status"]))
    await db.commit()
    await db.refresh(payment)
    return PaymentResponse.model_validate(payment)


@router.get("/booking/{booking_id}", response_model=PaymentResponse)
async def get_payment_for_booking(
    booking_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_owned_booking(db, booking_id, user)
    payment = (await db.execute(select(Payment).where(Payment.booking_id == booking.id))).scalar_one_or_none()
    if not payment:
        raise HTTPException(status_code=404, detail="No payment for this booking")
    return PaymentResponse.model_validate(payment)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    user: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return PaymentResponse.model_validate(await get_owned_payment(db, payment_id, user))


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------

async def _payment_for_intent(db: AsyncSession, intent_id: str | None) -> Payment | None:
    if not intent_id:
        return None
    return (
        await db.execute(select(Payment).where(Payment.stripe_payment_intent_id == intent_id).with_for_update())
    ).scalar_one_or_none()


async def handle_event(db: AsyncSession, event: dict) -> None:
    event_type = event.get("type")
    obj = event.get("data", {}).get("object", {})

    if event_type == "payment_intent.succeeded":
        payment = await _payment_for_intent(db, obj.get("id"))
        if payment and payment.status != "COMPLETED":
            await apply_status(db, payment, "COMPLETED")
            logger.info("Payment %s succeeded via webhook", payment.id)

    elif event_type == "payment_intent.payment_failed":
        payment = await _payment_for_intent(db, obj.get("id"))
        if payment and payment.status != "COMPLETED":
            error = obj.get("last_payment_error") or {}
            payment.status = "FAILED"
            payment.failure_reason = error.get("message", "Payment failed")
            logger.info("Payment %s failed via webhook: %s", payment.id, payment.failure_reason)

    elif event_type == "charge.refunded":
        payment = await _payment_for_intent(db, obj.get("payment_intent"))
        if payment:
            payment.status = "REFUNDED"
            payment.refund_amount = from_cents(obj.get("amount_refunded", 0))
            refunds = (obj.get("refunds") or {}).get("data") or []
            if refunds and not payment.refund_id:
                payment.refund_id = refunds[0].get("id")
            logger.info("Payment %s refunded via webhook", payment.id)

    else:
        logger.debug("Ignoring webhook event %s", event_type)
        return

    await db.commit()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
):
    """
    Raw-body Stripe webhook. A bad signature is rejected with 400; once the
    event is verified, processing errors are logged and the event is still
    acknowledged so Stripe does not retry it forever.
    """
    payload = await request.body()
    event = construct_event(
        payload,
        stripe_signature,
        settings.stripe_webhook_secret,
        tolerance=settings.stripe_webhook_tolerance_seconds,
    )

    try:
        await handle_event(db, event)
    except Exception as exc:
        await db.rollback()
        logger.error("Webhook %s (%s) processing failed: %s", event.get("id"), event.get("type"), exc, exc_info=True)

    return {"received": True}
