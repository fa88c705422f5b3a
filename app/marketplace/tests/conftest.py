"""
Pytest fixtures for marketplace tests.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from billing.tests.factories import EscrowDepositFactory, make_intent
from marketplace.tests.factories import InquiryFactory


@pytest.fixture
def inquiry(db):
    """Owner-initiated PENDING inquiry."""
    return InquiryFactory()


@pytest.fixture
def owner_user(inquiry):
    return inquiry.owner.user


@pytest.fixture
def buyer_user(inquiry):
    return inquiry.buyer.user


@pytest.fixture
def linked_deposit(inquiry):
    """HELD deposit linked to ``inquiry``."""
    return EscrowDepositFactory(
        owner=inquiry.owner,
        buyer=inquiry.buyer,
        property=inquiry.property,
        inquiry=inquiry,
        held=True,
    )


@pytest.fixture
def stripe_settle():
    """Patch the capture and cancel calls escrow settlement makes."""
    target = "billing.adapters.stripe_adapter.StripeAdapter"
    with (
        patch(f"{target}.capture_payment_intent") as capture,
        patch(f"{target}.cancel_payment_intent") as cancel,
    ):
        capture.return_value = make_intent(status="succeeded")
        cancel.return_value = make_intent(status="canceled")
        yield SimpleNamespace(capture=capture, cancel=cancel)
