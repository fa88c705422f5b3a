"""
Billing admin configuration.

Escrow deposits are read-only here: status changes must go through
EscrowService (admin API) so the processor call and the compare-and-swap
happen together.
"""

from django.contrib import admin

from billing.models import BillingSetting, EscrowDeposit, Subscription, WebhookEvent


@admin.register(EscrowDeposit)
class EscrowDepositAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "owner",
        "buyer",
        "property",
        "amount_cents",
        "status",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "refund_reason", "created_at"]
    search_fields = ["id", "stripe_payment_intent_id", "owner__user__email"]
    readonly_fields = [
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
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """Subscriptions mirror Stripe; edit them in Stripe, not here."""

    list_display = [
        "id",
        "user",
        "tier",
        "status",
        "current_period_end",
        "cancel_at_period_end",
    ]
    list_filter = ["tier", "status", "cancel_at_period_end"]
    search_fields = ["user__email", "stripe_customer_id", "stripe_subscription_id"]
    readonly_fields = ["id", "created_at", "updated_at", "version"]
    raw_id_fields = ["user"]
    ordering = ["-created_at"]


@admin.register(BillingSetting)
class BillingSettingAdmin(admin.ModelAdmin):
    list_display = ["key", "updated_by", "updated_at"]
    search_fields = ["key"]
    readonly_fields = ["key", "value", "updated_by", "created_at", "updated_at"]

    def has_add_permission(self, request):
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """Webhook events are immutable once received."""

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "error_message",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
