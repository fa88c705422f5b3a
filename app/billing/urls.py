"""
URL configuration for the billing app.

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing import views
from billing.webhooks import stripe_webhook

app_name = "billing"

urlpatterns = [
    # Subscription self-service
    path("pricing/", views.PricingView.as_view(), name="pricing"),
    path("subscription/", views.SubscriptionView.as_view(), name="subscription"),
    path("checkout/", views.CheckoutView.as_view(), name="checkout"),
    path("portal/", views.PortalView.as_view(), name="portal"),
    # Escrow
    path("escrow/quote/", views.EscrowQuoteView.as_view(), name="escrow-quote"),
    path("escrow/create/", views.EscrowCreateView.as_view(), name="escrow-create"),
    path("escrow/confirm/", views.EscrowConfirmView.as_view(), name="escrow-confirm"),
    path("escrow/check/", views.EscrowCheckView.as_view(), name="escrow-check"),
    # Webhooks
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
