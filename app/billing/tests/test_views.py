"""
API tests for subscription self-service and owner escrow endpoints.
"""

import uuid

import pytest
from django.urls import reverse

from billing.models import EscrowDeposit, Subscription
from billing.state_machines import EscrowStatus
from billing.tests.factories import EscrowDepositFactory, SubscriptionFactory, make_intent

pytestmark = pytest.mark.django_db


@pytest.fixture
def owner_client(api_client, owner_user):
    api_client.force_authenticate(owner_user)
    return api_client


# =============================================================================
# Subscription self-service
# =============================================================================


class TestPricingView:
    def test_public(self, api_client):
        response = api_client.get(reverse("billing:pricing"))

        assert response.status_code == 200
        pro = response.data["pro"]
        assert pro["monthly_price"] == 1900
        assert pro["monthly_price_formatted"] == "$19.00"
        assert pro["yearly_enabled"] is False
        assert response.data["currency"] == "NZD"

    def test_unlimited_limits_render_as_null(self, api_client):
        response = api_client.get(reverse("billing:pricing"))

        pro_limit = response.data["features"]["pro"]["wanted_ad_limit"]
        free_limit = response.data["features"]["free"]["wanted_ad_limit"]
        assert pro_limit == {"unlimited": True, "limit": None}
        assert free_limit == {"unlimited": False, "limit": 3}


class TestSubscriptionView:
    def test_requires_auth(self, api_client):
        assert api_client.get(reverse("billing:subscription")).status_code == 401

    def test_user_without_record_is_free(self, api_client, user):
        api_client.force_authenticate(user)

        response = api_client.get(reverse("billing:subscription"))

        assert response.status_code == 200
        assert response.data["tier"] == "free"
        assert response.data["status"] == "active"
        assert response.data["effective_tier"] == "free"
        assert not Subscription.objects.filter(user=user).exists()

    def test_past_due_pro_gets_free_limits(self, api_client):
        subscription = SubscriptionFactory(pro=True, status="past_due")
        api_client.force_authenticate(subscription.user)

        response = api_client.get(reverse("billing:subscription"))

        assert response.data["tier"] == "pro"
        assert response.data["effective_tier"] == "free"


class TestCheckoutView:
    url = "/api/v1/billing/checkout/"

    def test_creates_session_and_customer(self, api_client, user, mock_stripe):
        api_client.force_authenticate(user)

        response = api_client.post(self.url, {"interval": "monthly"}, format="json")

        assert response.status_code == 200
        assert response.data["url"].startswith("https://checkout.stripe.com/")
        assert Subscription.objects.get(user=user).stripe_customer_id == "cus_test_new"
        kwargs = mock_stripe.create_subscription_checkout.call_args.kwargs
        assert kwargs["price_id"] == "price_pro_monthly"
        assert kwargs["customer_id"] == "cus_test_new"
        assert kwargs["success_url"] == "https://app.example.com/billing?checkout=success"

    def test_reuses_existing_customer(self, api_client, mock_stripe):
        subscription = SubscriptionFactory()
        api_client.force_authenticate(subscription.user)

        api_client.post(self.url, {}, format="json")

        mock_stripe.create_customer.assert_not_called()
        kwargs = mock_stripe.create_subscription_checkout.call_args.kwargs
        assert kwargs["customer_id"] == subscription.stripe_customer_id

    def test_active_pro_conflicts(self, api_client, mock_stripe):
        subscription = SubscriptionFactory(pro=True)
        api_client.force_authenticate(subscription.user)

        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == 409
        assert response.data["error_code"] == "ALREADY_SUBSCRIBED"

    def test_yearly_disabled(self, api_client, user, mock_stripe):
        api_client.force_authenticate(user)

        response = api_client.post(self.url, {"interval": "yearly"}, format="json")

        assert response.status_code == 400
        assert response.data["error_code"] == "YEARLY_UNAVAILABLE"
        mock_stripe.create_subscription_checkout.assert_not_called()

    def test_yearly_enabled(self, api_client, user, mock_stripe):
        from billing.settings_store import billing_settings

        billing_settings.update({"pro_yearly_enabled": True})
        api_client.force_authenticate(user)

        response = api_client.post(self.url, {"interval": "yearly"}, format="json")

        assert response.status_code == 200
        kwargs = mock_stripe.create_subscription_checkout.call_args.kwargs
        assert kwargs["price_id"] == "price_pro_yearly"

    def test_stripe_not_configured(self, api_client, user, settings, mock_stripe):
        settings.STRIPE_SECRET_KEY = ""
        api_client.force_authenticate(user)

        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == 503
        assert response.data["error_code"] == "STRIPE_NOT_CONFIGURED"

    def test_invalid_interval(self, api_client, user):
        api_client.force_authenticate(user)
        response = api_client.post(self.url, {"interval": "weekly"}, format="json")
        assert response.status_code == 400


class TestPortalView:
    url = "/api/v1/billing/portal/"

    def test_returns_portal_url(self, api_client, mock_stripe):
        subscription = SubscriptionFactory()
        api_client.force_authenticate(subscription.user)

        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == 200
        assert response.data["url"].startswith("https://billing.stripe.com/")
        assert mock_stripe.create_portal_session.call_args.kwargs["return_url"] == (
            "https://app.example.com/billing"
        )

    def test_without_customer(self, api_client, user, mock_stripe):
        api_client.force_authenticate(user)

        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == 400
        assert response.data["error_code"] == "NO_CUSTOMER"


# =============================================================================
# Escrow
# =============================================================================


class TestEscrowQuoteView:
    def test_quotes_standard_fee(self, owner_client, prop, buyer):
        response = owner_client.post(
            reverse("billing:escrow-quote"),
            {"property_id": str(prop.id), "buyer_id": buyer.pk},
            format="json",
        )

        assert response.status_code == 200
        assert response.data == {
            "amount_cents": 29900,
            "amount_formatted": "$299.00",
            "tier": "standard",
            "tier_label": "Standard",
            "currency": "NZD",
        }

    def test_non_owner_forbidden(self, api_client, user, prop, buyer):
        api_client.force_authenticate(user)

        response = api_client.post(
            reverse("billing:escrow-quote"),
            {"property_id": str(prop.id), "buyer_id": buyer.pk},
            format="json",
        )

        assert response.status_code == 403
        assert response.data["error_code"] == "NOT_OWNER"

    def test_held_deposit_conflicts(self, owner_client, held_deposit):
        response = owner_client.post(
            reverse("billing:escrow-quote"),
            {
                "property_id": str(held_deposit.property_id),
                "buyer_id": held_deposit.buyer_id,
            },
            format="json",
        )

        assert response.status_code == 409
        assert response.data["error_code"] == "ESCROW_EXISTS"

    def test_unknown_property(self, owner_client, buyer):
        response = owner_client.post(
            reverse("billing:escrow-quote"),
            {"property_id": str(uuid.uuid4()), "buyer_id": buyer.pk},
            format="json",
        )

        assert response.status_code == 404
        assert response.data["error_code"] == "PROPERTY_NOT_FOUND"

    def test_invalid_body(self, owner_client):
        response = owner_client.post(
            reverse("billing:escrow-quote"), {"property_id": "nope"}, format="json"
        )
        assert response.status_code == 400


class TestEscrowCreateAndConfirmViews:
    def test_create_then_confirm(self, owner_client, prop, buyer, mock_stripe, mock_notify):
        created = owner_client.post(
            reverse("billing:escrow-create"),
            {"property_id": str(prop.id), "buyer_id": buyer.pk},
            format="json",
        )

        assert created.status_code == 201
        assert created.data["client_secret"] == "pi_test_123_secret_abc"
        assert created.data["amount_cents"] == 29900
        deposit = EscrowDeposit.objects.get(pk=created.data["escrow_id"])
        assert deposit.status == EscrowStatus.PENDING

        confirmed = owner_client.post(
            reverse("billing:escrow-confirm"),
            {"payment_intent_id": "pi_test_123"},
            format="json",
        )

        assert confirmed.status_code == 200
        assert confirmed.data["status"] == EscrowStatus.HELD
        assert confirmed.data["expires_at"] is not None

    def test_confirm_unauthorised_payment(self, owner_client, pending_deposit, mock_stripe):
        mock_stripe.retrieve_payment_intent.return_value = make_intent(
            intent_id=pending_deposit.stripe_payment_intent_id,
            status="requires_payment_method",
        )

        response = owner_client.post(
            reverse("billing:escrow-confirm"),
            {"payment_intent_id": pending_deposit.stripe_payment_intent_id},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "PAYMENT_NOT_AUTHORISED"
        pending_deposit.refresh_from_db()
        assert pending_deposit.status == EscrowStatus.PENDING

    def test_confirm_unknown_intent(self, owner_client, mock_stripe):
        response = owner_client.post(
            reverse("billing:escrow-confirm"),
            {"payment_intent_id": "pi_missing"},
            format="json",
        )
        assert response.status_code == 404


class TestEscrowCheckView:
    def test_held_grants_access(self, owner_client, held_deposit):
        response = owner_client.get(
            reverse("billing:escrow-check"),
            {
                "property_id": str(held_deposit.property_id),
                "buyer_id": held_deposit.buyer_id,
            },
        )

        assert response.status_code == 200
        assert response.data == {
            "has_access": True,
            "escrow_id": str(held_deposit.id),
            "status": EscrowStatus.HELD,
        }

    def test_no_deposit(self, owner_client, prop, buyer):
        response = owner_client.get(
            reverse("billing:escrow-check"),
            {"property_id": str(prop.id), "buyer_id": buyer.pk},
        )

        assert response.data == {"has_access": False, "escrow_id": None, "status": None}

    def test_refunded_deposit_has_no_access(self, owner_client, owner, prop, buyer):
        deposit = EscrowDepositFactory(
            owner=owner, property=prop, buyer=buyer, status=EscrowStatus.REFUNDED
        )

        response = owner_client.get(
            reverse("billing:escrow-check"),
            {"property_id": str(prop.id), "buyer_id": buyer.pk},
        )

        assert response.data["has_access"] is False
        assert response.data["status"] == EscrowStatus.REFUNDED
        assert response.data["escrow_id"] == str(deposit.id)
