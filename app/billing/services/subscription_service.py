"""
Subscription self-service: pricing, current plan, checkout and portal.

The local Subscription row is created lazily the first time a user needs
a Stripe customer. Tier and status are only ever written by
SubscriptionSynchronizer from processor events.

Usage:
    from billing.services import SubscriptionService

    session = SubscriptionService.create_checkout(user, interval="monthly")
    return Response({"url": session.url})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction

from core.exceptions import ConflictError, ValidationError
from core.services import BaseService

from billing.adapters import IdempotencyKeyGenerator, SessionResult, StripeAdapter
from billing.exceptions import StripeNotConfiguredError
from billing.feature_gate import features_for, to_limit
from billing.fees import format_amount
from billing.models import Subscription
from billing.settings_store import (
    FEATURE_FLAG_KEYS,
    FEATURE_LIMIT_KEYS,
    billing_settings,
)
from billing.state_machines import (
    BillingInterval,
    SubscriptionStatus,
    SubscriptionTier,
)

if TYPE_CHECKING:
    from authentication.models import User


def _render_features(table: dict[str, Any]) -> dict[str, Any]:
    rendered = {key: to_limit(table[key]).to_json() for key in FEATURE_LIMIT_KEYS}
    rendered.update({key: bool(table[key]) for key in FEATURE_FLAG_KEYS})
    return rendered


class SubscriptionService(BaseService):
    """
    Service for user-facing subscription operations.

    Methods:
        get_pricing: Public price list and feature tables
        get_user_subscription: Current plan with resolved limits
        get_or_create_customer: Stripe customer for a user
        create_checkout: Checkout Session for the Pro plan
        create_portal: Customer Portal session
    """

    @classmethod
    def get_pricing(cls) -> dict[str, Any]:
        current = billing_settings.get()
        monthly = current.pro_monthly_price
        yearly = current.pro_yearly_price
        return {
            "pro": {
                "monthly_price": monthly,
                "monthly_price_formatted": format_amount(monthly),
                "yearly_price": yearly,
                "yearly_price_formatted": format_amount(yearly),
                "yearly_enabled": current.pro_yearly_enabled,
                "yearly_monthly_equivalent": round(yearly / 12),
                "yearly_savings": monthly * 12 - yearly,
            },
            "features": {
                SubscriptionTier.FREE: _render_features(current.free_features),
                SubscriptionTier.PRO: _render_features(current.pro_features),
            },
            "currency": settings.BILLING_CURRENCY.upper(),
        }

    @classmethod
    def get_user_subscription(cls, user: User) -> dict[str, Any]:
        """
        Current subscription for display.

        Users with no record are reported as FREE / ACTIVE.
        """
        subscription = Subscription.objects.filter(user=user).first()
        if subscription is None:
            data: dict[str, Any] = {
                "tier": SubscriptionTier.FREE,
                "status": SubscriptionStatus.ACTIVE,
                "current_period_start": None,
                "current_period_end": None,
                "cancel_at_period_end": False,
                "canceled_at": None,
            }
        else:
            data = {
                "tier": subscription.tier,
                "status": subscription.status,
                "current_period_start": subscription.current_period_start,
                "current_period_end": subscription.current_period_end,
                "cancel_at_period_end": subscription.cancel_at_period_end,
                "canceled_at": subscription.canceled_at,
            }
        resolved = features_for(user)
        data["effective_tier"] = resolved["tier"]
        data["limits"] = resolved["limits"]
        data["flags"] = resolved["flags"]
        return data

    @classmethod
    def get_or_create_customer(cls, user: User) -> str:
        """
        Return the user's Stripe customer id, creating the customer once.

        Raises:
            StripeNotConfiguredError: If Stripe is not configured
            StripeError: If customer creation fails
        """
        existing = (
            Subscription.objects.filter(user=user)
            .values_list("stripe_customer_id", flat=True)
            .first()
        )
        if existing:
            return existing

        customer_id = StripeAdapter.create_customer(
            email=user.email,
            user_id=user.pk,
            idempotency_key=IdempotencyKeyGenerator.generate("customer", user.pk),
        )

        with transaction.atomic():
            subscription, _ = Subscription.objects.select_for_update().get_or_create(
                user=user
            )
            if subscription.stripe_customer_id:
                return subscription.stripe_customer_id
            subscription.stripe_customer_id = customer_id
            subscription.save(update_fields=["stripe_customer_id", "version", "updated_at"])

        cls.get_logger().info(
            "Created Stripe customer",
            extra={"user_id": user.pk, "customer_id": customer_id},
        )
        return customer_id

    @classmethod
    def _price_id_for(cls, interval: str) -> str:
        if interval == BillingInterval.YEARLY:
            price_id = getattr(settings, "STRIPE_PRO_YEARLY_PRICE_ID", "")
            if not billing_settings.get().pro_yearly_enabled or not price_id:
                raise ValidationError(
                    "Yearly billing is not available",
                    error_code="YEARLY_UNAVAILABLE",
                )
            return price_id
        price_id = getattr(settings, "STRIPE_PRO_PRICE_ID", "")
        if not price_id:
            raise StripeNotConfiguredError("Pro plan price is not configured")
        return price_id

    @classmethod
    def create_checkout(
        cls,
        user: User,
        interval: str = BillingInterval.MONTHLY,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> SessionResult:
        """
        Create a Checkout Session for the Pro plan.

        Raises:
            ConflictError: User already has an active Pro subscription
            ValidationError: Yearly requested while disabled or unpriced
            StripeNotConfiguredError: Stripe or the price is not configured
        """
        if not StripeAdapter.is_configured():
            raise StripeNotConfiguredError()

        subscription = Subscription.objects.filter(user=user).first()
        if subscription is not None and subscription.is_active_pro:
            raise ConflictError(
                "You already have an active Pro subscription",
                error_code="ALREADY_SUBSCRIBED",
            )

        price_id = cls._price_id_for(interval)
        customer_id = cls.get_or_create_customer(user)
        base_url = settings.FRONTEND_URL.rstrip("/")

        session = StripeAdapter.create_subscription_checkout(
            customer_id=customer_id,
            price_id=price_id,
            user_id=user.pk,
            success_url=success_url or f"{base_url}/billing?checkout=success",
            cancel_url=cancel_url or f"{base_url}/billing?checkout=canceled",
        )
        cls.get_logger().info(
            "Checkout session created",
            extra={"user_id": user.pk, "interval": interval, "session_id": session.id},
        )
        return session

    @classmethod
    def create_portal(cls, user: User, return_url: str | None = None) -> SessionResult:
        """
        Raises:
            ValidationError: User has no Stripe customer yet
        """
        if not StripeAdapter.is_configured():
            raise StripeNotConfiguredError()

        customer_id = (
            Subscription.objects.filter(user=user)
            .values_list("stripe_customer_id", flat=True)
            .first()
        )
        if not customer_id:
            raise ValidationError(
                "No billing account found. Subscribe first.",
                error_code="NO_CUSTOMER",
            )

        base_url = settings.FRONTEND_URL.rstrip("/")
        return StripeAdapter.create_portal_session(
            customer_id=customer_id,
            return_url=return_url or f"{base_url}/billing",
        )
