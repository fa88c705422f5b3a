"""
Billing models.

Usage:
    from billing.models import EscrowDeposit, Subscription, WebhookEvent
"""

from billing.models.billing_setting import SETTING_KEY_PREFIX, BillingSetting
from billing.models.escrow_deposit import EscrowDeposit
from billing.models.subscription import Subscription
from billing.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "BillingSetting",
    "EscrowDeposit",
    "MAX_WEBHOOK_RETRIES",
    "SETTING_KEY_PREFIX",
    "Subscription",
    "WebhookEvent",
]
