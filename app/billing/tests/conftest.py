"""
Pytest fixtures for billing tests.

Stripe is never called: ``mock_stripe`` patches every StripeAdapter method
the services use and returns the mocks so tests can assert on calls.

Usage:
    def test_release_captures(held_deposit, mock_stripe):
        EscrowService.release(held_deposit.id)
        mock_stripe.capture_payment_intent.assert_called_once()
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from authentication.tests.factories import StaffUserFactory, UserFactory
from billing.adapters import SessionResult
from billing.tests.factories import EscrowDepositFactory, make_intent
from marketplace.tests.factories import (
    BuyerProfileFactory,
    OwnerProfileFactory,
    PropertyFactory,
)


# =============================================================================
# Parties
# =============================================================================


@pytest.fixture
def owner(db):
    """OwnerProfile with its user."""
    return OwnerProfileFactory()


@pytest.fixture
def owner_user(owner):
    return owner.user


@pytest.fixture
def buyer(db):
    return BuyerProfileFactory()


@pytest.fixture
def prop(owner):
    """Standard-tier property (750k) owned by ``owner``."""
    return PropertyFactory(owner=owner)


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return StaffUserFactory()


# =============================================================================
# Deposits
# =============================================================================


@pytest.fixture
def pending_deposit(owner, buyer, prop):
    return EscrowDepositFactory(owner=owner, buyer=buyer, property=prop)


@pytest.fixture
def held_deposit(owner, buyer, prop):
    return EscrowDepositFactory(owner=owner, buyer=buyer, property=prop, held=True)


# =============================================================================
# Stripe
# =============================================================================


@pytest.fixture
def mock_stripe():
    """Patch StripeAdapter; returns a namespace of the patched methods."""
    target = "billing.adapters.stripe_adapter.StripeAdapter"
    with (
        patch(f"{target}.create_payment_intent") as create_payment_intent,
        patch(f"{target}.retrieve_payment_intent") as retrieve_payment_intent,
        patch(f"{target}.capture_payment_intent") as capture_payment_intent,
        patch(f"{target}.cancel_payment_intent") as cancel_payment_intent,
        patch(f"{target}.create_customer") as create_customer,
        patch(f"{target}.create_subscription_checkout") as create_subscription_checkout,
        patch(f"{target}.create_portal_session") as create_portal_session,
    ):
        create_payment_intent.return_value = make_intent()
        retrieve_payment_intent.return_value = make_intent(status="requires_capture")
        capture_payment_intent.return_value = make_intent(status="succeeded")
        cancel_payment_intent.return_value = make_intent(status="canceled")
        create_customer.return_value = "cus_test_new"
        create_subscription_checkout.return_value = SessionResult(
            id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123"
        )
        create_portal_session.return_value = SessionResult(
            id="bps_test_123", url="https://billing.stripe.com/p/session/bps_test_123"
        )
        yield SimpleNamespace(
            create_payment_intent=create_payment_intent,
            retrieve_payment_intent=retrieve_payment_intent,
            capture_payment_intent=capture_payment_intent,
            cancel_payment_intent=cancel_payment_intent,
            create_customer=create_customer,
            create_subscription_checkout=create_subscription_checkout,
            create_portal_session=create_portal_session,
        )


@pytest.fixture
def mock_notify():
    """Patch the notify() used by escrow services."""
    with patch("billing.services.escrow_service.notify") as notify:
        yield notify
