"""
End-to-end smoke test against a running server:
health -> register -> quote -> book -> enhancements -> payment intent.

    python scripts/smoke_flow.py --base-url http://localhost:8000
"""
import argparse
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import httpx


async def safe_request(resp: httpx.Response, step: str) -> dict:
    """Print response + fail loudly if error"""
    print(f"{step}: {resp.status_code}")
    try:
        body = resp.json()
    except ValueError:
        body = {"raw": resp.text}
    print(body)
    resp.raise_for_status()
    return body


async def main(base_url: str, pay: bool) -> None:
    pickup_at = (datetime.now(timezone.utc) + timedelta(days=3)).replace(hour=15, minute=0, second=0, microsecond=0)
    trip = {
        "service_type": "ONE_WAY",
        "scheduled_at": pickup_at.isoformat(),
        "pickup": {"address": "Harry Reid International Airport", "lat": 36.0840, "lng": -115.1537},
        "dropoff": {"address": "3600 S Las Vegas Blvd", "lat": 36.1126, "lng": -115.1767},
        "enhancements": {"trip_protection": True, "luggage": {"bag_count": 3}},
        "gratuity_amount": 10,
    }

    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        print("\n1. Checking health...")
        await safe_request(await client.get("/health"), "Health")

        print("\n2. Registering customer...")
        auth = await safe_request(await client.post("/api/auth/register", json={
            "email": f"smoke-{uuid.uuid4().hex[:8]}@example.com",
            "password": "smoke-test-password",
            "first_name": "Smoke",
            "last_name": "Test",
        }), "Register")
        headers = {"Authorization": f"Bearer {auth['access_token']}"}

        print("\n3. Checking service area...")
        await safe_request(await client.post("/api/locations/check-availability", json={
            "lat": trip["pickup"]["lat"], "lng": trip["pickup"]["lng"],
        }), "Availability")

        print("\n4. Quoting...")
        quote = await safe_request(await client.post("/api/quotes", json=trip), "Quote")

        print("\n5. Booking...")
        booking = await safe_request(await client.post("/api/bookings", json=trip, headers=headers), "Booking")
        if abs(booking["total_amount"] - quote["total"]) > 0.01:
            raise SystemExit(f"Booking total {booking['total_amount']} != quote {quote['total']}")

        print("\n6. Updating enhancements...")
        await safe_request(await client.post(
            f"/api/enhancements/bookings/{booking['id']}",
            json={"trip_protection": True, "child_seats": {"booster": 1}},
            headers=headers,
        ), "Enhancements")

        if pay:
            print("\n7. Creating payment intent...")
            await safe_request(await client.post(
                "/api/payments/intent",
                json={"booking_id": booking["id"]},
                headers={**headers, "Idempotency-Key": str(uuid.uuid4())},
            ), "Payment intent")

    print("\nSmoke flow passed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--skip-payment", action="store_true", help="skip the Stripe payment intent step")
    args = parser.parse_args()
    asyncio.run(main(args.base_url, not args.skip_payment))
