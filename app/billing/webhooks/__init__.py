"""
Stripe webhook intake and dispatch.

Usage:
    from billing.webhooks import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    ]
"""

from billing.webhooks.handlers import dispatch_webhook, register_handler
from billing.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
