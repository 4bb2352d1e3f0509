"""
Unit tests for integration credential encryption, masking and checks.
"""
import httpx
import pytest

from stableride.errors import ValidationError
from stableride.services.integrations import (
    encrypt_config, decrypt_config, mask_config, validate_config, check_connection,
)
from stableride.services.payment import StripeClient


class TestEncryption:
    def test_encrypt_decrypt(self):
        config = {"secret_key": "sk_live_abcdef", "publishable_key": "pk_live_123456"}
        token = encrypt_config(config, secret="k1")
        assert "sk_live_abcdef" not in token
        assert decrypt_config(token, secret="k1") == config

    def test_wrong_key_fails(self):
        token = encrypt_config({"api_key": "x"}, secret="k1")
        with pytest.raises(ValidationError, match="could not be decrypted"):
            decrypt_config(token, secret="k2")


class TestMasking:
    def test_secrets_masked(self):
        masked = mask_config({
            "secret_key": "sk_test_abcdef1234",
            "auth_token": "abc",
            "from_number": "+17025550100",
            "account_sid": "AC123",
        })
        assert masked["secret_key"] == "****1234"
        assert masked["auth_token"] == "****"
        assert masked["from_number"] == "+17025550100"
        assert masked["account_sid"] == "AC123"


class TestValidation:
    def test_missing_keys(self):
        with pytest.raises(ValidationError, match="auth_token"):
            validate_config("twilio", {"account_sid": "AC1", "from_number": "+1"})

    def test_unknown_provider(self):
        with pytest.raises(ValidationError, match="Unknown provider"):
            validate_config("paypal", {})


@pytest.mark.asyncio
class TestConnectionCheck:
    async def test_incomplete_config_fails_without_network(self):
        result = await check_connection("sendgrid", {"api_key": "SG.x"})
        assert result["success"] is False
        assert "from_email" in result["message"]

    async def test_non_stripe_complete_config(self):
        result = await check_connection("google_maps", {"api_key": "AIza"})
        assert result["success"] is True

    async def test_stripe_balance_call(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer sk_test_x"
            return httpx.Response(200, json={"object": "balance", "livemode": False})

        def factory(**kwargs):
            return StripeClient(**kwargs, transport=httpx.MockTransport(handler), backoff_seconds=0)

        result = await check_connection(
            "stripe", {"secret_key": "sk_test_x", "publishable_key": "pk_test_x"}, stripe_factory=factory,
        )
        assert result == {"success": True, "message": "Successfully connected to Stripe", "details": {"livemode": False}}

    async def test_stripe_auth_failure(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"type": "invalid_request_error", "message": "Invalid API Key"}})

        def factory(**kwargs):
            return StripeClient(**kwargs, transport=httpx.MockTransport(handler), backoff_seconds=0)

        result = await check_connection(
            "stripe", {"secret_key": "sk_bad", "publishable_key": "pk"}, stripe_factory=factory,
        )
        assert result["success"] is False
        assert "Invalid API Key" in result["message"]
