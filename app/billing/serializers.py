"""
DRF serializers for billing.

Request serializers validate shape only; business rules live in the
services and surface as core.exceptions errors.
"""

from __future__ import annotations

from rest_framework import serializers

from billing.models import EscrowDeposit, Subscription, WebhookEvent
from billing.state_machines import BillingInterval, RefundReason


# =============================================================================
# Escrow
# =============================================================================


class EscrowTargetSerializer(serializers.Serializer):
    """The owner / property / buyer triple a deposit is for (owner = caller)."""

    property_id = serializers.UUIDField()
    buyer_id = serializers.IntegerField(min_value=1)


class EscrowConfirmSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(max_length=255)


class EscrowQuoteSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField()
    amount_formatted = serializers.CharField()
    tier = serializers.CharField()
    tier_label = serializers.CharField()
    currency = serializers.CharField()


class EscrowIntentSerializer(serializers.Serializer):
    escrow_id = serializers.UUIDField()
    payment_intent_id = serializers.CharField()
    client_secret = serializers.CharField(allow_null=True)
    amount_cents = serializers.IntegerField()
    amount_formatted = serializers.CharField()
    currency = serializers.CharField()


class EscrowCheckSerializer(serializers.Serializer):
    has_access = serializers.BooleanField()
    escrow_id = serializers.UUIDField(allow_null=True)
    status = serializers.CharField(allow_null=True)


class EscrowDepositSerializer(serializers.ModelSerializer):
    class Meta:
        model = EscrowDeposit
        fields = [
            "id",
            "owner",
            "buyer",
            "property",
            "inquiry",
            "amount_cents",
            "currency",
            "status",
            "stripe_payment_intent_id",
            "expires_at",
            "held_at",
            "released_at",
            "refunded_at",
            "refund_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AdminRefundSerializer(serializers.Serializer):
    """EXPIRED belongs to the expiry sweep; staff refunds are always ``admin``."""

    reason = serializers.ChoiceField(
        choices=[(RefundReason.ADMIN.value, RefundReason.ADMIN.label)],
        default=RefundReason.ADMIN,
    )


# =============================================================================
# Subscriptions
# =============================================================================


class CheckoutSerializer(serializers.Serializer):
    interval = serializers.ChoiceField(
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
    )
    success_url = serializers.URLField(required=False)
    cancel_url = serializers.URLField(required=False)


class PortalSerializer(serializers.Serializer):
    return_url = serializers.URLField(required=False)


class SessionSerializer(serializers.Serializer):
    url = serializers.URLField()


class SubscriptionSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "user",
            "user_email",
            "tier",
            "status",
            "current_period_start",
            "current_period_end",
            "cancel_at_period_end",
            "canceled_at",
            "stripe_customer_id",
            "stripe_subscription_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# =============================================================================
# Webhooks
# =============================================================================


class WebhookEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = WebhookEvent
        fields = [
            "id",
            "stripe_event_id",
            "event_type",
            "status",
            "retry_count",
            "error_message",
            "processed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
