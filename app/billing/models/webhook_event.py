"""
WebhookEvent model: durable inbox for Stripe events.

Every verified event is stored before it is acknowledged. The row is the
retry queue: failed handling leaves it FAILED for retry_failed_webhooks to
pick up, and events that exhaust their retries become DEAD_LETTERED for
an operator to inspect and re-queue from the admin API.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_123",
        defaults={"event_type": "customer.subscription.updated", "payload": data},
    )
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks a Stripe event from receipt to processed or dead-lettered.

    Processing Flow:
        1. View verifies the signature and get_or_creates the row
        2. process_webhook_event marks PROCESSING (retry_count += 1)
        3. Handler succeeds -> PROCESSED
        4. Handler fails -> FAILED, or DEAD_LETTERED once retries are spent

    Fields:
        stripe_event_id: Unique Stripe Event ID (evt_xxx)
        event_type: Stripe event type
        payload: Full event JSON
        error_message: Last failure, kept after dead-lettering
        retry_count: Number of processing attempts so far
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField()

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    @property
    def can_retry(self) -> bool:
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_WEBHOOK_RETRIES
        )

    # Mutators below do not save; the caller saves.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """FAILED while retries remain, DEAD_LETTERED afterwards."""
        self.error_message = error_message
        if self.retry_count >= MAX_WEBHOOK_RETRIES:
            self.status = WebhookEventStatus.DEAD_LETTERED
        else:
            self.status = WebhookEventStatus.FAILED

    def requeue(self) -> None:
        """Give a dead-lettered event a fresh set of retries."""
        self.status = WebhookEventStatus.PENDING
        self.retry_count = 0

    def get_object(self) -> dict:
        """The ``data.object`` dict of the event, or an empty dict."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}
