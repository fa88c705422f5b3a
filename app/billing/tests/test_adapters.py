"""
Tests for the Stripe adapter: configuration, error translation and
idempotency keys. The stripe SDK is patched; no network calls are made.
"""

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from billing.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from billing.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeNotConfiguredError,
    StripeRateLimitError,
    StripeTimeoutError,
)


def intent_params(**overrides):
    values = {
        "amount_cents": 29900,
        "currency": "nzd",
        "idempotency_key": "escrow_intent:abc:1:deadbeef",
        "capture_method": "manual",
    }
    values.update(overrides)
    return CreatePaymentIntentParams(**values)


def stripe_intent(**overrides):
    values = {
        "id": "pi_test_1",
        "status": "requires_capture",
        "amount": 29900,
        "currency": "nzd",
        "client_secret": "pi_test_1_secret",
        "metadata": {"type": "escrow"},
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestIdempotencyKeyGenerator:
    def test_deterministic(self):
        first = IdempotencyKeyGenerator.generate("escrow_release", "abc")
        assert first == IdempotencyKeyGenerator.generate("escrow_release", "abc")
        assert first.startswith("escrow_release:abc:1:")

    def test_varies_by_operation_and_attempt(self):
        keys = {
            IdempotencyKeyGenerator.generate("escrow_release", "abc"),
            IdempotencyKeyGenerator.generate("escrow_refund", "abc"),
            IdempotencyKeyGenerator.generate("escrow_release", "abc", attempt=2),
        }
        assert len(keys) == 3


class TestCreatePaymentIntentParams:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount_cents": 0},
            {"idempotency_key": ""},
            {"currency": ""},
            {"capture_method": "later"},
        ],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ValueError):
            intent_params(**overrides)


class TestPaymentIntents:
    def test_not_configured(self, settings):
        settings.STRIPE_SECRET_KEY = ""

        with pytest.raises(StripeNotConfiguredError):
            StripeAdapter.create_payment_intent(intent_params())

    def test_create_passes_manual_capture_and_key(self):
        with patch("stripe.PaymentIntent.create", return_value=stripe_intent()) as create:
            result = StripeAdapter.create_payment_intent(intent_params())

        kwargs = create.call_args.kwargs
        assert kwargs["capture_method"] == "manual"
        assert kwargs["idempotency_key"] == "escrow_intent:abc:1:deadbeef"
        assert result.id == "pi_test_1"
        assert result.amount_cents == 29900
        assert result.funds_secured

    def test_cancel_passes_reason(self):
        with patch(
            "stripe.PaymentIntent.cancel", return_value=stripe_intent(status="canceled")
        ) as cancel:
            result = StripeAdapter.cancel_payment_intent(
                "pi_test_1", idempotency_key="k", reason="abandoned"
            )

        assert cancel.call_args.kwargs["cancellation_reason"] == "abandoned"
        assert not result.funds_secured

    @pytest.mark.parametrize(
        "error,expected",
        [
            (stripe.CardError("Your card was declined", None, "card_declined"), StripeCardDeclinedError),
            (stripe.InvalidRequestError("No such payment_intent", "id"), StripeInvalidRequestError),
            (stripe.RateLimitError("Too many requests"), StripeRateLimitError),
            (stripe.APIConnectionError("Request timed out"), StripeTimeoutError),
            (stripe.APIConnectionError("Connection reset"), StripeAPIUnavailableError),
            (stripe.AuthenticationError("Invalid API key"), StripeInvalidRequestError),
            (stripe.APIError("Internal error"), StripeAPIUnavailableError),
            (RuntimeError("surprise"), StripeAPIUnavailableError),
        ],
    )
    def test_error_translation(self, error, expected):
        with patch("stripe.PaymentIntent.capture", side_effect=error):
            with pytest.raises(expected):
                StripeAdapter.capture_payment_intent("pi_test_1", idempotency_key="k")


class TestVerifyWebhookSignature:
    def test_valid_signature_returns_event(self):
        payload = json.dumps({"id": "evt_1", "type": "invoice.paid"}).encode()
        with patch("stripe.WebhookSignature.verify_header", return_value=True):
            event = StripeAdapter.verify_webhook_signature(payload, "t=1,v1=abc")

        assert event == {"id": "evt_1", "type": "invoice.paid"}

    def test_bad_signature(self):
        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.verify_webhook_signature(b"{}", "t=1,v1=abc")
        assert exc_info.value.stripe_code == "signature_verification_failed"

    def test_malformed_payload(self):
        with patch("stripe.WebhookSignature.verify_header", return_value=True):
            with pytest.raises(StripeInvalidRequestError):
                StripeAdapter.verify_webhook_signature(b"not json", "t=1,v1=abc")

    def test_missing_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""

        with pytest.raises(StripeNotConfiguredError):
            StripeAdapter.verify_webhook_signature(b"{}", "t=1,v1=abc")
