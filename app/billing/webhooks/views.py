"""
Stripe webhook endpoint.

The view verifies the signature, stores the event durably and queues it.
It answers 200 as soon as the event is stored, whatever later processing
does; handling failures are retried from the WebhookEvent table.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.adapters import StripeAdapter
from billing.exceptions import StripeInvalidRequestError, StripeNotConfiguredError
from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Stripe webhook events.

    Returns:
        200: Event stored (new or duplicate)
        400: Missing or invalid signature, or malformed event
        503: Webhook secret not configured
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(payload, signature)
    except StripeNotConfiguredError:
        logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not set")
        return HttpResponse("Webhooks not configured", status=503)
    except StripeInvalidRequestError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e)},
        )
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"stripe_event_id": stripe_event_id, "event_type": event_type},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created:
        logger.info(
            f"Duplicate webhook, stored status: {webhook_event.status}",
            extra={"stripe_event_id": stripe_event_id},
        )
        return HttpResponse("Already received", status=200)

    try:
        from billing.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # Stored as PENDING; retry_failed_webhooks picks it up.
        logger.error(
            "Failed to queue webhook",
            extra={"stripe_event_id": stripe_event_id},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)
