"""
Tests for Stripe webhook intake, dispatch and the durable retry queue.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.urls import reverse
from django.utils import timezone

from core.services import ServiceResult

from billing.models import MAX_WEBHOOK_RETRIES, Subscription, WebhookEvent
from billing.state_machines import SubscriptionTier, WebhookEventStatus
from billing.tasks import (
    cleanup_stuck_webhooks,
    process_webhook_event,
    retry_failed_webhooks,
)
from billing.tests.factories import SubscriptionFactory, WebhookEventFactory
from billing.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook

pytestmark = pytest.mark.django_db

WEBHOOK_SECRET = "whsec_test_dummy"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Stripe-Signature header for payload, as Stripe computes it."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event_body(event_id="evt_test_1", event_type="invoice.paid", obj=None) -> bytes:
    return json.dumps(
        {"id": event_id, "type": event_type, "data": {"object": obj or {"id": "in_1"}}}
    ).encode()


@pytest.fixture
def webhook_url():
    return reverse("billing:stripe-webhook")


@pytest.fixture
def mock_delay():
    with patch("billing.tasks.process_webhook_event.delay") as delay:
        yield delay


# =============================================================================
# Intake view
# =============================================================================


class TestStripeWebhookView:
    def test_stores_and_queues_signed_event(self, client, webhook_url, mock_delay):
        body = event_body()

        response = client.post(
            webhook_url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body),
        )

        assert response.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_test_1")
        assert event.status == WebhookEventStatus.PENDING
        assert event.event_type == "invoice.paid"
        mock_delay.assert_called_once_with(str(event.id))

    def test_missing_signature(self, client, webhook_url, mock_delay):
        response = client.post(webhook_url, data=event_body(), content_type="application/json")

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_bad_signature(self, client, webhook_url, mock_delay):
        body = event_body()
        response = client.post(
            webhook_url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body, secret="whsec_wrong"),
        )

        assert response.status_code == 400
        assert response.content == b"Invalid signature"
        assert not WebhookEvent.objects.exists()
        mock_delay.assert_not_called()

    def test_unconfigured_secret(self, client, webhook_url, settings, mock_delay):
        settings.STRIPE_WEBHOOK_SECRET = ""
        body = event_body()

        response = client.post(
            webhook_url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body),
        )

        assert response.status_code == 503

    def test_event_without_type(self, client, webhook_url, mock_delay):
        body = json.dumps({"id": "evt_no_type"}).encode()
        response = client.post(
            webhook_url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body),
        )
        assert response.status_code == 400

    def test_duplicate_is_acknowledged_not_requeued(self, client, webhook_url, mock_delay):
        body = event_body()
        for _ in range(2):
            response = client.post(
                webhook_url,
                data=body,
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE=sign(body),
            )
            assert response.status_code == 200

        assert WebhookEvent.objects.count() == 1
        assert mock_delay.call_count == 1

    def test_queue_failure_still_acknowledges(self, client, webhook_url, mock_delay):
        mock_delay.side_effect = ConnectionError("broker down")
        body = event_body()

        response = client.post(
            webhook_url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body),
        )

        assert response.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PENDING

    def test_get_not_allowed(self, client, webhook_url):
        assert client.get(webhook_url).status_code == 405


# =============================================================================
# Handlers
# =============================================================================


def subscription_object(customer="cus_test_1", status="active", **extra):
    now = int(time.time())
    return {
        "id": "sub_test_1",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "items": {
            "data": [
                {"current_period_start": now, "current_period_end": now + 30 * 86400}
            ]
        },
        **extra,
    }


class TestHandlers:
    def test_subscription_events_are_registered(self):
        for event_type in (
            "customer.subscription.created",
            "customer.subscription.updated",
            "customer.subscription.deleted",
        ):
            assert event_type in WEBHOOK_HANDLERS

    def test_unregistered_event_type_succeeds(self):
        event = WebhookEventFactory(event_type="charge.dispute.created")
        assert dispatch_webhook(event).success

    def test_subscription_updated_upgrades_user(self):
        subscription = SubscriptionFactory(stripe_customer_id="cus_test_1")
        event = WebhookEventFactory(
            payload={"data": {"object": subscription_object()}},
        )

        result = dispatch_webhook(event)

        assert result.success
        subscription.refresh_from_db()
        assert subscription.tier == SubscriptionTier.PRO

    def test_unknown_customer_is_acknowledged(self):
        event = WebhookEventFactory(
            payload={"data": {"object": subscription_object(customer="cus_nobody")}},
        )
        assert dispatch_webhook(event).success

    def test_missing_subscription_id_fails(self):
        event = WebhookEventFactory(payload={"data": {"object": {"customer": "cus_1"}}})
        result = dispatch_webhook(event)
        assert not result.success
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"

    def test_subscription_deleted_downgrades(self):
        subscription = SubscriptionFactory(pro=True)
        event = WebhookEventFactory(
            event_type="customer.subscription.deleted",
            payload={
                "data": {
                    "object": {
                        "id": subscription.stripe_subscription_id,
                        "customer": subscription.stripe_customer_id,
                    }
                }
            },
        )

        assert dispatch_webhook(event).success
        subscription.refresh_from_db()
        assert subscription.tier == SubscriptionTier.FREE
        assert subscription.stripe_subscription_id is None


# =============================================================================
# Processing task and retry queue
# =============================================================================


class TestProcessWebhookEvent:
    def test_marks_processed(self):
        event = WebhookEventFactory(event_type="invoice.paid")

        result = process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert result["status"] == WebhookEventStatus.PROCESSED
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.retry_count == 1

    def test_already_processed_is_skipped(self):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)
        with patch("billing.webhooks.handlers.dispatch_webhook") as dispatch:
            result = process_webhook_event(str(event.id))
        assert result["status"] == "skipped_processed"
        dispatch.assert_not_called()

    def test_unknown_event(self):
        import uuid

        assert process_webhook_event(str(uuid.uuid4()))["status"] == "not_found"

    def test_handler_exception_marks_failed(self):
        event = WebhookEventFactory()
        with patch(
            "billing.webhooks.handlers.dispatch_webhook",
            side_effect=RuntimeError("boom"),
        ):
            result = process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert result["status"] == WebhookEventStatus.FAILED
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "RuntimeError: boom"

    def test_failure_result_marks_failed(self):
        event = WebhookEventFactory()
        with patch(
            "billing.webhooks.handlers.dispatch_webhook",
            return_value=ServiceResult.failure("nope", error_code="SOMETHING"),
        ):
            process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "nope"

    def test_dead_letters_after_max_retries(self):
        event = WebhookEventFactory(
            status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES - 1
        )
        with patch(
            "billing.webhooks.handlers.dispatch_webhook",
            side_effect=RuntimeError("still broken"),
        ):
            result = process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert result["status"] == WebhookEventStatus.DEAD_LETTERED
        assert event.status == WebhookEventStatus.DEAD_LETTERED
        assert event.retry_count == MAX_WEBHOOK_RETRIES

    def test_dead_lettered_event_is_not_reprocessed(self):
        event = WebhookEventFactory(
            status=WebhookEventStatus.DEAD_LETTERED, retry_count=MAX_WEBHOOK_RETRIES
        )
        result = process_webhook_event(str(event.id))
        assert result["status"] == "skipped_dead_lettered"

    def test_handler_writes_roll_back_on_failure(self):
        SubscriptionFactory(stripe_customer_id="cus_test_1")
        event = WebhookEventFactory(payload={"data": {"object": subscription_object()}})

        def sync_then_fail(webhook_event):
            WEBHOOK_HANDLERS["customer.subscription.updated"](webhook_event)
            raise RuntimeError("after write")

        with patch("billing.webhooks.handlers.dispatch_webhook", side_effect=sync_then_fail):
            process_webhook_event(str(event.id))

        assert Subscription.objects.get().tier == SubscriptionTier.FREE


class TestRetryFailedWebhooks:
    def test_requeues_failed_and_orphaned_events(self, mock_delay):
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=2)
        orphan = WebhookEventFactory()
        WebhookEvent.objects.filter(pk=orphan.pk).update(
            created_at=timezone.now() - timedelta(minutes=10)
        )
        WebhookEventFactory()  # fresh PENDING, still in flight
        WebhookEventFactory(
            status=WebhookEventStatus.DEAD_LETTERED, retry_count=MAX_WEBHOOK_RETRIES
        )
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = retry_failed_webhooks()

        assert result == {"queued_count": 2}
        queued = {call.args[0] for call in mock_delay.call_args_list}
        assert queued == {str(failed.id), str(orphan.id)}


class TestCleanupStuckWebhooks:
    def test_resets_stuck_processing(self):
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, retry_count=1)
        WebhookEvent.objects.filter(pk=stuck.pk).update(
            updated_at=timezone.now() - timedelta(hours=1)
        )
        WebhookEventFactory(status=WebhookEventStatus.PROCESSING, retry_count=1)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        stuck.refresh_from_db()
        assert stuck.status == WebhookEventStatus.FAILED
        assert "timed out" in stuck.error_message
