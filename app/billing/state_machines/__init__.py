"""
State enums for billing models.

Usage:
    from billing.state_machines import EscrowStatus, SubscriptionTier
"""

from billing.state_machines.states import (
    BillingInterval,
    EscrowStatus,
    RefundReason,
    SubscriptionStatus,
    SubscriptionTier,
    WebhookEventStatus,
)

__all__ = [
    "BillingInterval",
    "EscrowStatus",
    "RefundReason",
    "SubscriptionStatus",
    "SubscriptionTier",
    "WebhookEventStatus",
]
