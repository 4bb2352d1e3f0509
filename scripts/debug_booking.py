"""
Print everything stored about a booking: the row, its enhancements, payment
and (when live) Stripe's view of the payment intent.

    python scripts/debug_booking.py SR-1A2B3C4D
"""
import argparse
import asyncio
import json

from sqlalchemy import select, or_

from stableride.database import AsyncSessionLocal
from stableride.errors import DomainError
from stableride.models.booking import Booking, TripEnhancement
from stableride.models.payment import Payment
from stableride.services.payment import get_stripe_client


def _row(obj) -> dict:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


def _print(title: str, data) -> None:
    print(f"\n== {title} ==")
    print(json.dumps(data, indent=2, default=str))


async def debug(identifier: str, check_stripe: bool) -> int:
    async with AsyncSessionLocal() as db:
        booking = (
            await db.execute(select(Booking).where(or_(Booking.id == identifier, Booking.reference == identifier)))
        ).scalar_one_or_none()
        if not booking:
            print(f"No booking matches {identifier}")
            return 1
        _print("Booking", _row(booking))

        enhancement = (
            await db.execute(select(TripEnhancement).where(TripEnhancement.booking_id == booking.id))
        ).scalar_one_or_none()
        _print("Enhancements", _row(enhancement) if enhancement else None)

        payment = (await db.execute(select(Payment).where(Payment.booking_id == booking.id))).scalar_one_or_none()
        _print("Payment", _row(payment) if payment else None)

    if check_stripe and payment and payment.stripe_payment_intent_id:
        try:
            intent = await get_stripe_client().retrieve_payment_intent(payment.stripe_payment_intent_id)
        except DomainError as e:
            print(f"\nStripe lookup failed: {e.message}")
            return 2
        _print("Stripe payment intent", {
            k: intent.get(k) for k in ("id", "status", "amount", "amount_received", "currency", "created")
        })
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("booking", help="booking id or SR- reference")
    parser.add_argument("--no-stripe", action="store_true", help="skip the Stripe lookup")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(debug(args.booking, not args.no_stripe)))


if __name__ == "__main__":
    main()
