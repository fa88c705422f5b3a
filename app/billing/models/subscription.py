"""
Subscription model: a user's entitlement tier, mirrored from Stripe.

Local code creates the row lazily at first checkout (to remember the
Stripe customer) and otherwise never sets tier or status; the
SubscriptionSynchronizer copies them from processor events.

Usage:
    from billing.models import Subscription

    subscription = Subscription.objects.filter(user=user).first()
    if subscription and subscription.is_active_pro:
        ...
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import VersionedModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import SubscriptionStatus, SubscriptionTier


class Subscription(UUIDPrimaryKeyMixin, VersionedModel):
    """
    One subscription record per user.

    Fields:
        tier / status: Copied from the processor
        current_period_start/end: Current billing period bounds
        cancel_at_period_end: Cancellation scheduled at period end
        canceled_at: When the processor reported cancellation
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        stripe_subscription_id: Stripe Subscription ID (sub_xxx), cleared on deletion
        deleted_stripe_subscription_id: Kept on deletion; late events for it are ignored
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="subscription",
    )
    tier = models.CharField(
        max_length=10,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE,
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
        db_index=True,
    )

    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)
    cancel_at_period_end = models.BooleanField(default=False)
    canceled_at = models.DateTimeField(null=True, blank=True)

    stripe_customer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )
    stripe_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )
    deleted_stripe_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Last Stripe Subscription ID deleted for this user",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["tier", "status"], name="subscription_tier_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.user_id}, {self.tier}, {self.status})"

    @property
    def is_active_pro(self) -> bool:
        return (
            self.tier == SubscriptionTier.PRO
            and self.status == SubscriptionStatus.ACTIVE
        )
