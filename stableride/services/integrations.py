"""
Third-party integration credentials: Fernet encryption at rest, masking for
list views, and connectivity tests.
"""
import base64
import hashlib
import json
import logging

from cryptography.fernet import Fernet, InvalidToken

from stableride.config import get_settings
from stableride.errors import ValidationError
from stableride.services.payment import StripeClient, StripeError, PSPError

logger = logging.getLogger(__name__)
settings = get_settings()

REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    "stripe": ("secret_key", "publishable_key"),
    "twilio": ("account_sid", "auth_token", "from_number"),
    "sendgrid": ("api_key", "from_email"),
    "google_maps": ("api_key",),
}

SENSITIVE_MARKERS = ("secret", "key", "token", "password")


def _fernet(secret: str | None = None) -> Fernet:
    # Any configured string works: Fernet needs 32 url-safe base64 bytes.
    digest = hashlib.sha256((secret or settings.integration_encryption_key).encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_config(config: dict, secret: str | None = None) -> str:
    return _fernet(secret).encrypt(json.dumps(config).encode()).decode()


def decrypt_config(token: str, secret: str | None = None) -> dict:
    try:
        return json.loads(_fernet(secret).decrypt(token.encode()))
    except InvalidToken:
        logger.error("Integration config could not be decrypted; was the encryption key rotated?")
        raise ValidationError("Integration configuration could not be decrypted")


def mask_value(value) -> str:
    text = str(value)
    if len(text) <= 4:
        return "****"
    return "****" + text[-4:]


def mask_config(config: dict) -> dict:
    return {
        k: mask_value(v) if any(m in k.lower() for m in SENSITIVE_MARKERS) and v else v
        for k, v in config.items()
    }


def validate_config(provider: str, config: dict) -> None:
    required = REQUIRED_KEYS.get(provider)
    if required is None:
        raise ValidationError(f"Unknown provider: {provider}")
    missing = [k for k in required if not config.get(k)]
    if missing:
        raise ValidationError(f"Missing required configuration: {', '.join(missing)}")


async def check_connection(provider: str, config: dict, stripe_factory=StripeClient) -> dict:
    """
    Checks the required keys for every provider; for Stripe also makes a
    live balance call with the stored secret key.
    """
    try:
        validate_config(provider, config)
    except ValidationError as e:
        return {"success": False, "message": e.message}

    if provider != "stripe":
        return {"success": True, "message": f"{provider} configuration is complete"}

    client = stripe_factory(api_key=config["secret_key"], api_base=settings.stripe_api_base, max_retries=1)
    try:
        balance = await client.retrieve_balance()
    except (StripeError, PSPError) as e:
        return {"success": False, "message": f"Stripe connection failed: {e.message}"}
    return {
        "success": True,
        "message": "Successfully connected to Stripe",
        "details": {"livemode": balance.get("livemode", False)},
    }
