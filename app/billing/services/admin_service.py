"""
Read-side queries for the billing admin API.
"""

from __future__ import annotations

from typing import Any

from django.db.models import Count, Sum

from core.services import BaseService

from billing.models import EscrowDeposit, Subscription, WebhookEvent
from billing.state_machines import (
    EscrowStatus,
    SubscriptionStatus,
    SubscriptionTier,
    WebhookEventStatus,
)


def _counts(queryset, field: str, choices) -> dict[str, int]:
    rows = queryset.values(field).annotate(count=Count("pk")).order_by()
    counts = {value: 0 for value in choices.values}
    counts.update({row[field]: row["count"] for row in rows})
    return counts


class BillingAdminService(BaseService):
    @classmethod
    def get_stats(cls) -> dict[str, Any]:
        """Subscription, escrow and webhook totals for the admin dashboard."""
        escrows = EscrowDeposit.objects.all()
        released_cents = escrows.filter(status=EscrowStatus.RELEASED).aggregate(
            total=Sum("amount_cents")
        )["total"]
        held_cents = escrows.filter(status=EscrowStatus.HELD).aggregate(
            total=Sum("amount_cents")
        )["total"]

        return {
            "subscriptions": {
                "by_tier": _counts(Subscription.objects.all(), "tier", SubscriptionTier),
                "by_status": _counts(
                    Subscription.objects.all(), "status", SubscriptionStatus
                ),
                "active_pro": Subscription.objects.filter(
                    tier=SubscriptionTier.PRO, status=SubscriptionStatus.ACTIVE
                ).count(),
            },
            "escrows": {
                "by_status": _counts(escrows, "status", EscrowStatus),
                "released_revenue_cents": released_cents or 0,
                "held_amount_cents": held_cents or 0,
            },
            "webhooks": {
                "by_status": _counts(
                    WebhookEvent.objects.all(), "status", WebhookEventStatus
                ),
            },
        }
