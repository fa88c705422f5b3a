"""
Billing services.

Usage:
    from billing.services import EscrowService, SubscriptionService
"""

from billing.services.admin_service import BillingAdminService
from billing.services.escrow_service import EscrowIntent, EscrowQuote, EscrowService
from billing.services.subscription_service import SubscriptionService
from billing.services.subscription_sync import SubscriptionSynchronizer

__all__ = [
    "BillingAdminService",
    "EscrowIntent",
    "EscrowQuote",
    "EscrowService",
    "SubscriptionService",
    "SubscriptionSynchronizer",
]
