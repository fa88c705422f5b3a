"""
Billing-specific exceptions.

Exception Hierarchy:
    EscrowAlreadyExistsError - HELD deposit already exists for the triple (409)
    InvalidStateTransitionError - Deposit not in the required state (409)
    StaleRecordError - Optimistic locking conflict (409)

    StripeNotConfiguredError - No processor keys in this environment (503)

    StripeError - Base for processor call failures (502)
    ├── StripeCardDeclinedError - Card declined (permanent)
    ├── StripeInvalidRequestError - Invalid request or signature (permanent)
    ├── StripeRateLimitError - Rate limited (transient, retry)
    ├── StripeAPIUnavailableError - API unavailable (transient, retry)
    └── StripeTimeoutError - Request timeout (transient, retry)

Usage:
    from billing.exceptions import InvalidStateTransitionError

    if rows_updated == 0:
        raise InvalidStateTransitionError(
            f"Escrow {deposit_id} is not held",
            details={"escrow_id": str(deposit_id), "current_status": "released"},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConfigurationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Escrow State Exceptions
# =============================================================================


class EscrowAlreadyExistsError(ConflictError):
    """
    Raised when the owner already holds a deposit for this buyer and property.

    The existing deposit id is exposed so the client can resume instead of
    paying twice.
    """

    default_error_code: str = "ESCROW_EXISTS"

    def __init__(self, escrow_id, message: str | None = None):
        self.escrow_id = escrow_id
        super().__init__(
            message or "An escrow deposit already exists for this buyer and property",
            details={"escrow_id": str(escrow_id)},
        )


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a deposit is not in the state a transition requires.

    The record is never modified when this is raised.
    """

    default_error_code: str = "INVALID_STATUS"


class StaleRecordError(ConflictError):
    """Raised when optimistic locking detects a concurrent modification."""

    default_error_code: str = "STALE_RECORD"


# =============================================================================
# Configuration
# =============================================================================


class StripeNotConfiguredError(ConfigurationError):
    """Raised by processor-backed operations when STRIPE_SECRET_KEY is empty."""

    default_error_code: str = "STRIPE_NOT_CONFIGURED"

    def __init__(self, message: str = "Payment processing is not configured"):
        super().__init__(message)


# =============================================================================
# Processor Exceptions
# =============================================================================


class StripeError(ExternalServiceError):
    """
    Base exception for failed Stripe calls.

    Attributes:
        stripe_code: Stripe's error code, when present
        decline_code: Card decline code, when present
    """

    default_error_code: str = "STRIPE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


class StripeCardDeclinedError(StripeError):
    """Card was declined by the issuing bank. Do not retry with the same card."""

    default_error_code: str = "CARD_DECLINED"
    http_status: int = 402


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters, or an unverifiable webhook signature.

    Usually a bug on our side or a forged request; never retried.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


class StripeRateLimitError(StripeError):
    """Rate limited by the Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"


class StripeAPIUnavailableError(StripeError):
    """Network failure or Stripe 5xx."""

    default_error_code: str = "STRIPE_UNAVAILABLE"


class StripeTimeoutError(StripeError):
    """
    Stripe call timed out.

    The operation may have succeeded remotely; retry with the same
    idempotency key.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
