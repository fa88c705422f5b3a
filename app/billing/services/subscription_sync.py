"""
Mirror Stripe subscription objects into local Subscription rows.

Called from webhook handlers with the ``data.object`` of
``customer.subscription.*`` events. Stripe is the source of truth: these
methods copy state, they never decide it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.models import Subscription
from billing.state_machines import SubscriptionStatus, SubscriptionTier

STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
}

DEFAULT_PERIOD = timedelta(days=30)


def map_stripe_status(stripe_status: str | None) -> str:
    """Anything unrecognised (incomplete, incomplete_expired, paused) is INCOMPLETE."""
    return STATUS_MAP.get(stripe_status or "", SubscriptionStatus.INCOMPLETE)


def _from_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


def extract_period(obj: dict[str, Any]) -> tuple[datetime, datetime]:
    """
    Billing period bounds of a subscription object.

    Newer API versions put them on the first item, older ones on the
    subscription itself. Missing bounds fall back to now / now + 30 days.
    """
    items = (obj.get("items") or {}).get("data") or []
    first_item = items[0] if items else {}

    start = _from_timestamp(first_item.get("current_period_start")) or _from_timestamp(
        obj.get("current_period_start")
    )
    end = _from_timestamp(first_item.get("current_period_end")) or _from_timestamp(
        obj.get("current_period_end")
    )
    now = timezone.now()
    return start or now, end or (now + DEFAULT_PERIOD)


class SubscriptionSynchronizer(BaseService):
    """
    Methods:
        sync_from_event: Upsert from subscription.created / .updated
        mark_deleted: Downgrade on subscription.deleted
    """

    @classmethod
    def _find_user(cls, obj: dict[str, Any]):
        customer_id = obj.get("customer")
        if customer_id:
            subscription = (
                Subscription.objects.select_related("user")
                .filter(stripe_customer_id=customer_id)
                .first()
            )
            if subscription is not None:
                return subscription.user

        user_id = (obj.get("metadata") or {}).get("user_id")
        if user_id:
            return get_user_model().objects.filter(pk=user_id).first()
        return None

    @classmethod
    def sync_from_event(cls, obj: dict[str, Any]) -> ServiceResult[Subscription]:
        """
        Upsert the user's subscription as PRO with the processor's status.

        Events for a period older than the one already stored are ignored,
        as are events for a subscription that has already been deleted.

        Error codes:
            USER_NOT_FOUND: No user for the customer id or metadata
        """
        logger = cls.get_logger()
        stripe_subscription_id = obj.get("id")
        customer_id = obj.get("customer")

        user = cls._find_user(obj)
        if user is None:
            logger.warning(
                "No user found for Stripe subscription",
                extra={
                    "stripe_subscription_id": stripe_subscription_id,
                    "customer_id": customer_id,
                },
            )
            return ServiceResult.failure(
                f"No user found for customer {customer_id}",
                error_code="USER_NOT_FOUND",
            )

        status = map_stripe_status(obj.get("status"))
        period_start, period_end = extract_period(obj)

        with transaction.atomic():
            subscription, created = Subscription.objects.select_for_update().get_or_create(
                user=user
            )
            if (
                stripe_subscription_id
                and subscription.deleted_stripe_subscription_id == stripe_subscription_id
            ):
                logger.info(
                    "Ignoring event for deleted subscription",
                    extra={"stripe_subscription_id": stripe_subscription_id},
                )
                return ServiceResult.success(subscription)
            if (
                not created
                and subscription.stripe_subscription_id == stripe_subscription_id
                and subscription.current_period_start is not None
                and period_start < subscription.current_period_start
            ):
                logger.info(
                    "Ignoring stale subscription event",
                    extra={
                        "stripe_subscription_id": stripe_subscription_id,
                        "stored_period_start": subscription.current_period_start.isoformat(),
                        "event_period_start": period_start.isoformat(),
                    },
                )
                return ServiceResult.success(subscription)

            subscription.tier = SubscriptionTier.PRO
            subscription.status = status
            subscription.current_period_start = period_start
            subscription.current_period_end = period_end
            subscription.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
            subscription.canceled_at = _from_timestamp(obj.get("canceled_at"))
            subscription.stripe_subscription_id = stripe_subscription_id
            if customer_id:
                subscription.stripe_customer_id = customer_id
            subscription.save()

        logger.info(
            "Subscription synced",
            extra={"user_id": user.pk, "status": status, "tier": SubscriptionTier.PRO},
        )
        return ServiceResult.success(subscription)

    @classmethod
    def mark_deleted(cls, obj: dict[str, Any]) -> ServiceResult[Subscription]:
        """
        Downgrade to FREE / CANCELED.

        The external id moves to ``deleted_stripe_subscription_id`` so late
        created/updated events for it cannot bring the user back to PRO.

        Error codes:
            SUBSCRIPTION_NOT_FOUND: No local record for the subscription
        """
        stripe_subscription_id = obj.get("id")
        subscription = None
        if stripe_subscription_id:
            subscription = Subscription.objects.filter(
                stripe_subscription_id=stripe_subscription_id
            ).first()
        if subscription is None and obj.get("customer"):
            subscription = Subscription.objects.filter(
                stripe_customer_id=obj["customer"]
            ).first()
        if subscription is None:
            cls.get_logger().warning(
                "No local subscription for deleted Stripe subscription",
                extra={"stripe_subscription_id": stripe_subscription_id},
            )
            return ServiceResult.failure(
                f"No subscription found for {stripe_subscription_id}",
                error_code="SUBSCRIPTION_NOT_FOUND",
            )

        with transaction.atomic():
            subscription.tier = SubscriptionTier.FREE
            subscription.status = SubscriptionStatus.CANCELED
            subscription.canceled_at = _from_timestamp(obj.get("canceled_at")) or timezone.now()
            subscription.cancel_at_period_end = False
            subscription.deleted_stripe_subscription_id = (
                stripe_subscription_id or subscription.stripe_subscription_id
            )
            subscription.stripe_subscription_id = None
            subscription.save()

        cls.get_logger().info(
            "Subscription canceled",
            extra={
                "user_id": subscription.user_id,
                "stripe_subscription_id": stripe_subscription_id,
            },
        )
        return ServiceResult.success(subscription)
