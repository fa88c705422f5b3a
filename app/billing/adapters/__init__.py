"""
Adapters for external services.

Usage:
    from billing.adapters import StripeAdapter, CreatePaymentIntentParams
"""

from billing.adapters.stripe_adapter import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    SessionResult,
    StripeAdapter,
)

__all__ = [
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "SessionResult",
    "StripeAdapter",
]
