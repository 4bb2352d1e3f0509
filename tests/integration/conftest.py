"""
API test harness: in-memory SQLite, fakeredis and a MockTransport standing
in for the Stripe REST API.
"""
import hashlib
import hmac
import itertools
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import fakeredis
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import stableride.models  # noqa: F401  registers every table on Base.metadata
from stableride import redis_client
from stableride.database import Base, get_db
from stableride.main import app
from stableride.middleware.auth import create_admin_token, create_customer_token
from stableride.models.admin import AdminUser
from stableride.models.user import User
from stableride.services.auth import hash_password
from stableride.services.payment import StripeClient, get_stripe_client

DECLINED_CARD = "pm_card_declined"


def stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Stripe-Signature header value as Stripe would send it."""
    ts = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


class FakeStripe:
    """Keeps payment intents in memory and answers the endpoints the app calls."""

    def __init__(self):
        self.intents: dict[str, dict] = {}
        self.refunds: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.available_cents = 0
        self._ids = itertools.count(1)

    def client(self) -> StripeClient:
        return StripeClient(
            api_key="sk_test_fake",
            transport=httpx.MockTransport(self.handle),
            max_retries=1,
            backoff_seconds=0,
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        parts = request.url.path.removeprefix("/v1/").split("/")

        if parts == ["customers"]:
            return httpx.Response(200, json={"id": f"cus_{next(self._ids)}", "email": form.get("email")})

        if parts == ["payment_intents"]:
            intent_id = f"pi_{next(self._ids)}"
            self.intents[intent_id] = {
                "id": intent_id,
                "amount": int(form["amount"]),
                "amount_received": 0,
                "currency": form["currency"],
                "status": "requires_payment_method",
                "client_secret": f"{intent_id}_secret",
                "metadata": {"booking_id": form.get("metadata[booking_id]")},
            }
            return httpx.Response(200, json=self.intents[intent_id])

        if parts[0] == "payment_intents":
            intent = self.intents.get(parts[1])
            if intent is None:
                return httpx.Response(404, json={"error": {"type": "invalid_request_error", "message": "No such payment_intent"}})
            if len(parts) == 3 and parts[2] == "confirm":
                if form.get("payment_method") == DECLINED_CARD:
                    return httpx.Response(402, json={"error": {
                        "type": "card_error", "code": "card_declined", "message": "Your card was declined.",
                    }})
                intent["status"] = "succeeded"
                intent["amount_received"] = intent["amount"]
                self.available_cents += intent["amount"]
            elif len(parts) == 3 and parts[2] == "cancel":
                if intent["status"] in ("succeeded", "canceled"):
                    return httpx.Response(400, json={"error": {
                        "type": "invalid_request_error",
                        "message": f"This PaymentIntent has a status of {intent['status']}.",
                    }})
                intent["status"] = "canceled"
            return httpx.Response(200, json=intent)

        if parts == ["refunds"]:
            refund = {"id": f"re_{next(self._ids)}", "amount": int(form["amount"]), "status": "succeeded"}
            self.refunds.append(refund)
            return httpx.Response(200, json=refund)

        if parts == ["balance"]:
            return httpx.Response(200, json={
                "object": "balance",
                "livemode": False,
                "available": [{"amount": self.available_cents, "currency": "usd"}],
                "pending": [],
            })

        return httpx.Response(404, json={"error": {"type": "invalid_request_error", "message": "Unknown route"}})


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest_asyncio.fixture
async def redis(monkeypatch):
    fake = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_client, "_redis_pool", fake)
    yield fake
    await fake.aclose()


@pytest_asyncio.fixture
async def client(session_factory, fake_stripe, redis):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_client] = fake_stripe.client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def customer(session_factory):
    async with session_factory() as db:
        user = User(
            email="rider@example.com",
            password_hash=hash_password("password123"),
            first_name="Riley",
            last_name="Rider",
            phone="7025550100",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def driver(session_factory):
    async with session_factory() as db:
        user = User(
            email="driver@example.com",
            password_hash=hash_password("password123"),
            first_name="Dana",
            last_name="Driver",
            is_driver=True,
            driver_status="AVAILABLE",
            vehicle_info={"make": "Lincoln", "model": "Navigator", "plate": "SR-001"},
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user


@pytest.fixture
def customer_headers(customer):
    return {"Authorization": f"Bearer {create_customer_token(customer.id)}"}


@pytest.fixture
def driver_headers(driver):
    return {"Authorization": f"Bearer {create_customer_token(driver.id)}"}


@pytest.fixture
def make_admin(session_factory):
    """Creates an admin with the given role and returns (admin, headers)."""
    async def factory(role: str = "SUPER_ADMIN"):
        async with session_factory() as db:
            admin = AdminUser(
                email=f"{role.lower()}@stableride.example",
                password_hash=hash_password("admin-password"),
                first_name="Ops",
                last_name=role.title(),
                role=role,
                permissions=[],
            )
            db.add(admin)
            await db.commit()
            await db.refresh(admin)
        return admin, {"Authorization": f"Bearer {create_admin_token(admin.id, admin.role)}"}
    return factory


@pytest_asyncio.fixture
async def admin_headers(make_admin):
    _, headers = await make_admin("SUPER_ADMIN")
    return headers


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

def pickup_time(days: int = 3, hour: int = 14) -> datetime:
    return (datetime.now(timezone.utc) + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


# Two points on the Las Vegas Strip about a third of a mile apart: the
# one-way minimum fare applies.
STRIP_PICKUP = {"address": "3600 S Las Vegas Blvd", "lat": 36.1147, "lng": -115.1728}
STRIP_DROPOFF = {"address": "3570 S Las Vegas Blvd", "lat": 36.1197, "lng": -115.1728}


def one_way_payload(scheduled_at: datetime | None = None, **extra) -> dict:
    payload = {
        "service_type": "ONE_WAY",
        "scheduled_at": (scheduled_at or pickup_time()).isoformat(),
        "pickup": STRIP_PICKUP,
        "dropoff": STRIP_DROPOFF,
    }
    payload.update(extra)
    return payload


@pytest.fixture
def create_booking(client, customer_headers):
    async def factory(**extra) -> dict:
        resp = await client.post("/api/bookings", json=one_way_payload(**extra), headers=customer_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return factory
