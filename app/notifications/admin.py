"""
Django admin configuration for notifications.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only view of notifications for support."""

    list_display = [
        "id",
        "notification_type",
        "recipient",
        "title",
        "is_read",
        "created_at",
    ]
    list_filter = ["is_read", "notification_type", "created_at"]
    search_fields = ["title", "recipient__email", "idempotency_key"]
    ordering = ["-created_at"]
    readonly_fields = [
        "notification_type",
        "recipient",
        "title",
        "body",
        "data",
        "emailed_at",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["recipient"]
