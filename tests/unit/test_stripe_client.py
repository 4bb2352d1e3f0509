"""
Unit tests for the Stripe adapter: request encoding, retries, error mapping
and webhook signature verification.
"""
import hashlib
import hmac
import json
import time

import httpx
import pytest
from decimal import Decimal
from urllib.parse import parse_qsl

from stableride.services.payment import (
    StripeClient, StripeError, PSPError, WebhookSignatureError,
    construct_event, map_intent_status, to_cents, from_cents,
)


def client_for(handler, max_retries=3) -> StripeClient:
    return StripeClient(
        api_key="sk_test_123",
        api_base="https://stripe.test/v1",
        max_retries=max_retries,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


class TestHelpers:
    def test_cents_round_trip_values(self):
        assert to_cents(Decimal("54.19")) == 5419
        assert to_cents(10) == 1000
        assert from_cents(5419) == Decimal("54.19")

    @pytest.mark.parametrize("stripe_status,local", [
        ("succeeded", "COMPLETED"),
        ("processing", "PROCESSING"),
        ("requires_payment_method", "PENDING"),
        ("requires_action", "PENDING"),
        ("canceled", "FAILED"),
    ])
    def test_status_mapping(self, stripe_status, local):
        assert map_intent_status(stripe_status) == local


@pytest.mark.asyncio
class TestStripeClient:
    async def test_create_intent_is_form_encoded(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers["Authorization"]
            seen["idem"] = request.headers.get("Idempotency-Key")
            seen["content_type"] = request.headers["Content-Type"]
            seen["form"] = dict(parse_qsl(request.content.decode()))
            return httpx.Response(200, json={"id": "pi_1", "status": "requires_payment_method"})

        intent = await client_for(handler).create_payment_intent(
            Decimal("54.19"), "usd", customer="cus_1", metadata={"booking_id": "b1"}, idempotency_key="k1",
        )
        assert intent["id"] == "pi_1"
        assert seen["auth"] == "Bearer sk_test_123"
        assert seen["idem"] == "k1"
        assert seen["content_type"] == "application/x-www-form-urlencoded"
        assert seen["form"]["amount"] == "5419"
        assert seen["form"]["metadata[booking_id]"] == "b1"
        assert seen["form"]["automatic_payment_methods[enabled]"] == "true"

    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503, json={})
            return httpx.Response(200, json={"object": "balance", "available": []})

        balance = await client_for(handler).retrieve_balance()
        assert balance["object"] == "balance"
        assert len(calls) == 3

    async def test_gives_up_after_max_retries(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(PSPError) as exc:
            await client_for(handler, max_retries=2).retrieve_balance()
        assert exc.value.status_code == 502

    async def test_card_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(402, json={"error": {
                "type": "card_error", "code": "card_declined", "message": "Your card was declined.",
            }})

        with pytest.raises(StripeError) as exc:
            await client_for(handler).confirm_payment_intent("pi_1", "pm_card_declined")
        assert exc.value.status_code == 402
        assert exc.value.message == "Your card was declined."
        assert exc.value.code == "card_declined"
        assert len(calls) == 1

    async def test_invalid_request_maps_to_400(self):
        def handler(request):
            return httpx.Response(404, json={"error": {"type": "invalid_request_error", "message": "No such intent"}})

        with pytest.raises(StripeError) as exc:
            await client_for(handler).retrieve_payment_intent("pi_missing")
        assert exc.value.status_code == 400


class TestWebhookSignature:
    SECRET = "whsec_test"

    def signed(self, payload: bytes, timestamp: int | None = None) -> str:
        ts = timestamp or int(time.time())
        signature = hmac.new(self.SECRET.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
        return f"t={ts},v1={signature}"

    def test_valid_signature(self):
        payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded"}).encode()
        event = construct_event(payload, self.signed(payload), self.SECRET)
        assert event["id"] == "evt_1"

    def test_tampered_payload(self):
        payload = b'{"id": "evt_1"}'
        header = self.signed(payload)
        with pytest.raises(WebhookSignatureError, match="verification failed"):
            construct_event(b'{"id": "evt_2"}', header, self.SECRET)

    def test_stale_timestamp(self):
        payload = b'{"id": "evt_1"}'
        header = self.signed(payload, timestamp=int(time.time()) - 3600)
        with pytest.raises(WebhookSignatureError, match="tolerance"):
            construct_event(payload, header, self.SECRET, tolerance=300)

    def test_missing_or_malformed_header(self):
        with pytest.raises(WebhookSignatureError, match="Missing"):
            construct_event(b"{}", None, self.SECRET)
        with pytest.raises(WebhookSignatureError, match="verification failed"):
            construct_event(b"{}", "v1=abc", self.SECRET)

    def test_missing_secret_rejected(self):
        payload = b'{"id": "evt_1"}'
        with pytest.raises(WebhookSignatureError, match="not configured"):
            construct_event(payload, self.signed(payload), "")

    def test_invalid_json_after_valid_signature(self):
        payload = b"not json"
        with pytest.raises(WebhookSignatureError, match="not valid JSON"):
            construct_event(payload, self.signed(payload), self.SECRET)
