"""
Webhook event handlers for Stripe events.

Handlers are registered by event type and return a ServiceResult. A
failure result (or an exception) leaves the WebhookEvent FAILED for the
retry task; success marks it PROCESSED.

Usage:
    from billing.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("customer.subscription.paused")
    def handle_paused(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult

from billing.models import WebhookEvent
from billing.services import SubscriptionSynchronizer

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}

# Expected failures that retrying cannot fix; the event is acknowledged.
UNRECOVERABLE_CODES = frozenset({"USER_NOT_FOUND", "SUBSCRIPTION_NOT_FOUND"})


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a handler for one or more event types.

    Usage:
        @register_handler("invoice.paid", "invoice.payment_failed")
        def handle_invoice(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unregistered event types succeed without doing anything.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def _acknowledge_unrecoverable(
    webhook_event: WebhookEvent, result: ServiceResult
) -> ServiceResult:
    if not result.success and result.error_code in UNRECOVERABLE_CODES:
        logger.warning(
            f"Ignoring {webhook_event.event_type}: {result.error}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return ServiceResult.success(None)
    return result


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler("customer.subscription.created", "customer.subscription.updated")
def handle_subscription_changed(webhook_event: WebhookEvent) -> ServiceResult:
    obj = webhook_event.get_object()
    if not obj.get("id"):
        return ServiceResult.failure(
            "Subscription event without a subscription id",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    result = SubscriptionSynchronizer.sync_from_event(obj)
    return _acknowledge_unrecoverable(webhook_event, result)


@register_handler("customer.subscription.deleted")
def handle_subscription_deleted(webhook_event: WebhookEvent) -> ServiceResult:
    obj = webhook_event.get_object()
    if not obj.get("id"):
        return ServiceResult.failure(
            "Subscription event without a subscription id",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    result = SubscriptionSynchronizer.mark_deleted(obj)
    return _acknowledge_unrecoverable(webhook_event, result)


# =============================================================================
# Acknowledged Events
# =============================================================================


@register_handler(
    "checkout.session.completed",
    "invoice.paid",
    "invoice.payment_failed",
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "payment_intent.amount_capturable_updated",
)
def handle_logged_event(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record and acknowledge.

    Subscription state arrives through customer.subscription.* and escrow
    state through the confirm step, so these events carry nothing to apply.
    """
    obj = webhook_event.get_object()
    logger.info(
        f"Received {webhook_event.event_type}",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "object_id": obj.get("id"),
            "customer_id": obj.get("customer"),
        },
    )
    return ServiceResult.success(None)
