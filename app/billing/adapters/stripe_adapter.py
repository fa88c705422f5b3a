"""
Stripe API adapter for billing operations.

Every Stripe call goes through StripeAdapter so that configuration checks,
timeouts, idempotency keys, error translation and timing logs are applied
the same way everywhere.

Configuration (via settings):
- STRIPE_SECRET_KEY: API secret key; empty means "not configured"
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: SDK network retries (default: 3)

Usage:
    from billing.adapters import StripeAdapter, CreatePaymentIntentParams

    intent = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=49900,
            currency="nzd",
            idempotency_key=IdempotencyKeyGenerator.generate("escrow_intent", key),
            capture_method="manual",
            description="Finder's Fee Deposit",
        )
    )
    StripeAdapter.capture_payment_intent(intent.id, idempotency_key=...)
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import stripe
from django.conf import settings

from billing.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInvalidRequestError,
    StripeNotConfiguredError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount_cents: Amount in smallest currency unit
        currency: ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        capture_method: 'automatic' or 'manual' (escrow holds use manual)
        description: Shown on the Stripe dashboard and receipts
        metadata: Key-value pairs attached to the PaymentIntent
        customer_id: Optional Stripe Customer ID
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    capture_method: str = "automatic"
    description: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    customer_id: str | None = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.capture_method not in ("automatic", "manual"):
            raise ValueError("capture_method must be 'automatic' or 'manual'")


@dataclass
class PaymentIntentResult:
    """
    Result from PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: requires_payment_method, requires_capture, succeeded, canceled, ...
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        metadata: Attached metadata
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def funds_secured(self) -> bool:
        """Authorised (awaiting capture) or already captured."""
        return self.status in ("requires_capture", "succeeded")


@dataclass
class SessionResult:
    """Result from Checkout and Customer Portal session creation."""

    id: str
    url: str


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same inputs always give the same key, so a retried request (client
    retry, Celery retry, sweep re-run) collapses onto the original call.
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods; no instance state. Every call raises a
    billing.exceptions error on failure, never a raw stripe exception.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def is_configured() -> bool:
        return bool(getattr(settings, "STRIPE_SECRET_KEY", ""))

    @classmethod
    def _configure_stripe(cls) -> None:
        """
        Configure the SDK with API key, timeout and network retries.

        Raises:
            StripeNotConfiguredError: If STRIPE_SECRET_KEY is empty
        """
        if not cls.is_configured():
            raise StripeNotConfiguredError()
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        operation: str,
        call: Callable[[], Any],
        **log_context: Any,
    ) -> Any:
        """
        Run one Stripe call with configuration, timing logs and error mapping.
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)
        try:
            result = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_object_id": getattr(result, "id", None),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return result

    @staticmethod
    def _to_intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            metadata=dict(intent.metadata or {}),
        )

    # =========================================================================
    # Payment Intents
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls, params: CreatePaymentIntentParams
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        intent = cls._execute(
            "create_payment_intent",
            lambda: stripe.PaymentIntent.create(
                amount=params.amount_cents,
                currency=params.currency,
                capture_method=params.capture_method,
                description=params.description,
                metadata=params.metadata,
                customer=params.customer_id,
                automatic_payment_methods={"enabled": True},
                idempotency_key=params.idempotency_key,
            ),
            amount_cents=params.amount_cents,
            currency=params.currency,
            idempotency_key=params.idempotency_key,
        )
        return cls._to_intent_result(intent)

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> PaymentIntentResult:
        intent = cls._execute(
            "retrieve_payment_intent",
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id),
            payment_intent_id=payment_intent_id,
        )
        return cls._to_intent_result(intent)

    @classmethod
    def capture_payment_intent(
        cls, payment_intent_id: str, idempotency_key: str
    ) -> PaymentIntentResult:
        """
        Capture a manual-capture PaymentIntent (escrow release).

        Raises:
            StripeInvalidRequestError: PaymentIntent not capturable
        """
        intent = cls._execute(
            "capture_payment_intent",
            lambda: stripe.PaymentIntent.capture(
                payment_intent_id,
                idempotency_key=idempotency_key,
            ),
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
        )
        return cls._to_intent_result(intent)

    @classmethod
    def cancel_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        reason: str = "requested_by_customer",
    ) -> PaymentIntentResult:
        """
        Cancel an uncaptured PaymentIntent, returning held funds (escrow refund).

        Raises:
            StripeInvalidRequestError: PaymentIntent already captured or canceled
        """
        intent = cls._execute(
            "cancel_payment_intent",
            lambda: stripe.PaymentIntent.cancel(
                payment_intent_id,
                cancellation_reason=reason,
                idempotency_key=idempotency_key,
            ),
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
        )
        return cls._to_intent_result(intent)

    # =========================================================================
    # Customers and Sessions
    # =========================================================================

    @classmethod
    def create_customer(
        cls, email: str, user_id: int | str, idempotency_key: str
    ) -> str:
        """Create a Stripe Customer and return its ID (cus_xxx)."""
        customer = cls._execute(
            "create_customer",
            lambda: stripe.Customer.create(
                email=email,
                metadata={"user_id": str(user_id)},
                idempotency_key=idempotency_key,
            ),
            user_id=str(user_id),
        )
        return customer.id

    @classmethod
    def create_subscription_checkout(
        cls,
        customer_id: str,
        price_id: str,
        user_id: int | str,
        success_url: str,
        cancel_url: str,
    ) -> SessionResult:
        """Create a Checkout Session in subscription mode."""
        metadata = {"user_id": str(user_id)}
        session = cls._execute(
            "create_subscription_checkout",
            lambda: stripe.checkout.Session.create(
                mode="subscription",
                customer=customer_id,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            ),
            customer_id=customer_id,
            price_id=price_id,
        )
        return SessionResult(id=session.id, url=session.url)

    @classmethod
    def create_portal_session(cls, customer_id: str, return_url: str) -> SessionResult:
        """Create a Customer Portal session for self-service billing."""
        session = cls._execute(
            "create_portal_session",
            lambda: stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            ),
            customer_id=customer_id,
        )
        return SessionResult(id=session.id, url=session.url)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify a webhook signature and parse the event.

        Returns:
            Parsed event dict

        Raises:
            StripeNotConfiguredError: If STRIPE_WEBHOOK_SECRET is empty
            StripeInvalidRequestError: Invalid signature or malformed payload
        """
        secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        if not secret:
            raise StripeNotConfiguredError("Webhook signing secret is not configured")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, secret
            )
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Malformed webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            )
        if not isinstance(event, dict):
            raise StripeInvalidRequestError(
                "Malformed webhook payload", stripe_code="invalid_payload"
            )
        return event

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions to billing exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request or authentication
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable or unknown failure
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, StripeError):
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(str(error), stripe_code=error.code)

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                )
            logger.error(
                "Connection error to Stripe", extra=log_context, exc_info=True
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
