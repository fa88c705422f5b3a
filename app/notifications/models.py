"""
Notification model for in-app notifications.

Notifications are immutable once created: title and body are fully
rendered strings kept as a historical record. Only ``is_read`` changes.

Usage:
    from notifications.models import Notification, NotificationKind

    Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationKind(models.TextChoices):
    """What happened. Clients switch on this to pick an icon and deep link."""

    INQUIRY_RECEIVED = "inquiry_received", "Inquiry received"
    INQUIRY_RESPONSE = "inquiry_response", "Inquiry response"
    ESCROW_RELEASED = "escrow_released", "Escrow released"
    ESCROW_REFUNDED = "escrow_refunded", "Escrow refunded"
    ESCROW_EXPIRED = "escrow_expired", "Escrow expired"


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Fields:
        recipient: User receiving the notification
        notification_type: NotificationKind value
        title / body: Fully rendered strings
        data: JSON context (ids for deep links)
        is_read: Whether recipient has read this notification
        emailed_at: Set once the email copy has been sent
        idempotency_key: Unique when present; repeats are dropped
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    notification_type = models.CharField(
        max_length=40,
        choices=NotificationKind.choices,
        db_index=True,
    )
    title = models.CharField(max_length=500)
    body = models.TextField(blank=True, default="")
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    emailed_at = models.DateTimeField(null=True, blank=True)
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )
