"""
Celery tasks for billing.

Tasks:
    process_webhook_event: Apply one stored Stripe event
    retry_failed_webhooks: Re-queue FAILED and orphaned PENDING events (beat)
    cleanup_stuck_webhooks: Reset events stuck in PROCESSING (beat)
    process_expired_escrows: Expiry sweep (beat, see billing.workers)

The WebhookEvent table is the retry queue. process_webhook_event records
each failure on the row instead of relying on Celery retries, so attempts
survive worker restarts and a poisoned event ends up DEAD_LETTERED after
MAX_WEBHOOK_RETRIES attempts.

Usage:
    from billing.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from billing.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from billing.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


STUCK_PROCESSING_THRESHOLD_MINUTES = 30
ORPHANED_PENDING_THRESHOLD_MINUTES = 5
RETRY_BATCH_SIZE = 100


def _record_failure(webhook_event: WebhookEvent, error_msg: str) -> None:
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    if webhook_event.status == WebhookEventStatus.DEAD_LETTERED:
        logger.error(
            "Webhook dead-lettered after exhausting retries",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
                "retry_count": webhook_event.retry_count,
                "error": error_msg,
            },
        )


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(bind=True, acks_late=True)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Returns:
        Dict with the processing outcome
    """
    from billing.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    with transaction.atomic():
        webhook_event = (
            WebhookEvent.objects.select_for_update()
            .filter(id=webhook_event_id)
            .first()
        )
        if webhook_event is None:
            logger.error(
                "WebhookEvent not found",
                extra={"webhook_event_id": str(webhook_event_id)},
            )
            return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

        if webhook_event.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.PROCESSING,
            WebhookEventStatus.DEAD_LETTERED,
        ):
            logger.info(
                f"WebhookEvent is {webhook_event.status}, skipping",
                extra={"stripe_event_id": webhook_event.stripe_event_id},
            )
            return {
                "status": f"skipped_{webhook_event.status}",
                "webhook_event_id": str(webhook_event_id),
            }

        webhook_event.mark_processing()
        webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        _record_failure(webhook_event, error_msg)
        return {
            "status": webhook_event.status,
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        _record_failure(webhook_event, error_msg)
        return {
            "status": webhook_event.status,
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return {
        "status": WebhookEventStatus.PROCESSED,
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue FAILED events with retries left, plus PENDING events whose
    initial enqueue never ran.

    Scheduled every 5 minutes by celery-beat.
    """
    orphan_cutoff = timezone.now() - timedelta(minutes=ORPHANED_PENDING_THRESHOLD_MINUTES)
    retryable = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, retry_count__lt=MAX_WEBHOOK_RETRIES)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=orphan_cutoff)
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in retryable:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1

    if queued_count:
        logger.info(
            f"Queued {queued_count} webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Reset events stuck in PROCESSING (worker died mid-handler) to FAILED.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        logger.warning(
            "Resetting stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": webhook.updated_at.isoformat(),
            },
        )
        _record_failure(webhook, "Processing timed out - reset for retry")
        reset_count += 1

    return {"reset_count": reset_count}


# Re-exported so Celery autodiscovery registers the sweep.
from billing.workers import process_expired_escrows  # noqa: E402, F401
