"""
Stripe payment adapter.

Talks to the Stripe REST API over httpx (form-encoded bodies, amounts in
cents). Transient failures (network errors, 429 and 5xx) are retried with
exponential backoff; card and request errors are raised immediately.
Webhook signatures are checked with the stripe SDK.
"""
import asyncio
import json
import logging
from decimal import Decimal

import httpx
import stripe

from stableride.config import get_settings
from stableride.errors import DomainError

logger = logging.getLogger(__name__)
settings = get_settings()


class PSPError(DomainError):
    """Provider unreachable or still failing after retries."""
    status_code = 502


class StripeError(DomainError):
    def __init__(self, message: str, status_code: int = 400, code: str | None = None, error_type: str | None = None):
        super().__init__(message, status_code)
        self.code = code
        self.error_type = error_type


class WebhookSignatureError(DomainError):
    status_code = 400


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


INTENT_STATUS_MAP = {
    "succeeded": "COMPLETED",
    "processing": "PROCESSING",
    "canceled": "FAILED",
}


def map_intent_status(stripe_status: str) -> str:
    """Stripe PaymentIntent status -> local payment status."""
    # requires_payment_method, requires_confirmation, requires_action, requires_capture
    return INTENT_STATUS_MAP.get(stripe_status, "PENDING")


def _encode(data: dict, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts into Stripe's bracket notation: metadata[booking_id]=..."""
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        if value is None:
            continue
        name = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            pairs.extend(_encode(value, name))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class StripeClient:
    RETRY_STATUSES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 20,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        data: dict | None = None,
        params: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        last_error = "unknown error"
        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    resp = await client.request(
                        method,
                        f"{self.api_base}{path}",
                        headers=headers,
                        data=dict(_encode(data)) if data else None,
                        params=params,
                    )
            except httpx.TransportError as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning("Stripe %s %s attempt %d failed: %s", method, path, attempt, last_error)
            else:
                if resp.status_code < 400:
                    return resp.json()
                if resp.status_code not in self.RETRY_STATUSES:
                    raise self._to_error(resp)
                last_error = f"HTTP {resp.status_code}"
                logger.warning("Stripe %s %s attempt %d returned %s", method, path, attempt, resp.status_code)

            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_seconds * 2 ** (attempt - 1))

        logger.error("Stripe %s %s failed after %d attempts: %s", method, path, self.max_retries, last_error)
        raise PSPError(f"Payment provider unavailable: {last_error}")

    @staticmethod
    def _to_error(resp: httpx.Response) -> StripeError:
        try:
            error = resp.json().get("error", {})
        except ValueError:
            error = {}
        message = error.get("message") or f"Stripe request failed with HTTP {resp.status_code}"
        error_type = error.get("type")
        status_code = 402 if error_type == "card_error" or resp.status_code == 402 else 400
        return StripeError(message, status_code=status_code, code=error.get("code"), error_type=error_type)

    # -- customers ----------------------------------------------------------

    async def create_customer(self, email: str, name: str | None = None, metadata: dict | None = None) -> dict:
        return await self._request(
            "POST", "/customers", data={"email": email, "name": name, "metadata": metadata or {}}
        )

    # -- payment intents ----------------------------------------------------

    async def create_payment_intent(
        self,
        amount,
        currency: str,
        customer: str | None = None,
        metadata: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        data = {
            "amount": to_cents(amount),
            "currency": currency,
            "customer": customer,
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        return await self._request("POST", "/payment_intents", data=data, idempotency_key=idempotency_key)

    async def retrieve_payment_intent(self, intent_id: str) -> dict:
        return await self._request("GET", f"/payment_intents/{intent_id}")

    async def confirm_payment_intent(self, intent_id: str, payment_method: str | None = None) -> dict:
        return await self._request(
            "POST", f"/payment_intents/{intent_id}/confirm", data={"payment_method": payment_method}
        )

    async def cancel_payment_intent(self, intent_id: str) -> dict:
        return await self._request("POST", f"/payment_intents/{intent_id}/cancel")

    # -- refunds ------------------------------------------------------------

    async def create_refund(
        self,
        payment_intent: str,
        amount=None,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        data = {
            "payment_intent": payment_intent,
            "amount": to_cents(amount) if amount is not None else None,
            "reason": reason,
        }
        return await self._request("POST", "/refunds", data=data, idempotency_key=idempotency_key)

    # -- balance ------------------------------------------------------------

    async def retrieve_balance(self) -> dict:
        return await self._request("GET", "/balance")


_client: StripeClient | None = None


def get_stripe_client() -> StripeClient:
    """FastAPI dependency; tests override it with a MockTransport-backed client."""
    global _client
    if _client is None:
        _client = StripeClient(
            api_key=settings.stripe_secret_key,
            api_base=settings.stripe_api_base,
            timeout=settings.stripe_timeout_seconds,
            max_retries=settings.stripe_max_retries,
        )
    return _client


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

def construct_event(payload: bytes, sig_header: str | None, secret: str, tolerance: int = 300) -> dict:
    """
    Verify a Stripe-Signature header with the Stripe SDK and return the
    event as a plain dict.
    """
    if not sig_header:
        raise WebhookSignatureError("Missing Stripe-Signature header")
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")

    try:
        stripe.Webhook.construct_event(payload, sig_header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(f"Webhook signature verification failed: {e.user_message or e}")
    except ValueError:
        raise WebhookSignatureError("Webhook payload is not valid JSON")
    return json.loads(payload)
