"""
Factory Boy factories for billing models.

Usage:
    from billing.tests.factories import EscrowDepositFactory

    deposit = EscrowDepositFactory()                      # PENDING
    deposit = EscrowDepositFactory(held=True)             # HELD, expires in 30 days
    deposit = EscrowDepositFactory(held=True, expired=True)  # HELD, deadline passed
"""

import uuid
from datetime import timedelta

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from billing.adapters import PaymentIntentResult
from billing.models import EscrowDeposit, Subscription, WebhookEvent
from billing.state_machines import (
    EscrowStatus,
    SubscriptionStatus,
    SubscriptionTier,
    WebhookEventStatus,
)
from marketplace.tests.factories import (
    BuyerProfileFactory,
    OwnerProfileFactory,
    PropertyFactory,
)


class EscrowDepositFactory(factory.django.DjangoModelFactory):
    """
    PENDING deposit for a fresh owner / property / buyer triple.

    Traits:
        held: HELD with held_at now and a 30 day deadline
        expired: deadline one hour in the past (combine with held)
    """

    class Meta:
        model = EscrowDeposit

    owner = factory.SubFactory(OwnerProfileFactory)
    buyer = factory.SubFactory(BuyerProfileFactory)
    property = factory.SubFactory(
        PropertyFactory, owner=factory.SelfAttribute("..owner")
    )
    amount_cents = 29900
    currency = "nzd"
    stripe_payment_intent_id = factory.LazyFunction(
        lambda: f"pi_test_{uuid.uuid4().hex[:16]}"
    )
    status = EscrowStatus.PENDING

    class Params:
        held = factory.Trait(
            status=EscrowStatus.HELD,
            held_at=factory.LazyFunction(timezone.now),
            expires_at=factory.LazyFunction(
                lambda: timezone.now() + timedelta(days=30)
            ),
        )
        expired = factory.Trait(
            expires_at=factory.LazyFunction(
                lambda: timezone.now() - timedelta(hours=1)
            ),
        )


class SubscriptionFactory(factory.django.DjangoModelFactory):
    """FREE / ACTIVE subscription with a Stripe customer."""

    class Meta:
        model = Subscription

    user = factory.SubFactory(UserFactory)
    tier = SubscriptionTier.FREE
    status = SubscriptionStatus.ACTIVE
    stripe_customer_id = factory.Sequence(lambda n: f"cus_test_{n}")

    class Params:
        pro = factory.Trait(
            tier=SubscriptionTier.PRO,
            stripe_subscription_id=factory.Sequence(lambda n: f"sub_test_{n}"),
            current_period_start=factory.LazyFunction(timezone.now),
            current_period_end=factory.LazyFunction(
                lambda: timezone.now() + timedelta(days=30)
            ),
        )


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """Stored, unprocessed customer.subscription.updated event."""

    class Meta:
        model = WebhookEvent

    stripe_event_id = factory.LazyFunction(lambda: f"evt_{uuid.uuid4().hex[:24]}")
    event_type = "customer.subscription.updated"
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.stripe_event_id,
            "type": o.event_type,
            "data": {"object": {"id": "sub_test_1", "customer": "cus_test_1"}},
        }
    )
    status = WebhookEventStatus.PENDING
    retry_count = 0


def make_intent(intent_id="pi_test_123", status="requires_payment_method", amount=29900):
    """PaymentIntentResult as StripeAdapter would return it."""
    return PaymentIntentResult(
        id=intent_id,
        status=status,
        amount_cents=amount,
        currency="nzd",
        client_secret=f"{intent_id}_secret_abc",
    )
