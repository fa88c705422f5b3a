"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT token endpoints
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
        token/verify/              - Verify token
    /api/v1/billing/               - Billing endpoints
        pricing/                   - Public price list
        subscription/              - Current subscription and limits
        checkout/                  - Pro checkout session
        portal/                    - Customer portal session
        escrow/quote/              - Finder's fee quote
        escrow/create/             - Start deposit payment
        escrow/confirm/            - Confirm held deposit
        escrow/check/              - Contact access check
        webhooks/stripe/           - Stripe webhook endpoint (POST)
    /api/v1/admin/billing/         - Staff billing API
        stats/                     - Dashboard totals
        settings/                  - Billing settings (GET/PUT)
        process-expired-escrows/   - Run expiry sweep
        escrows/                   - Deposit list
        escrows/{id}/release/      - Force release
        escrows/{id}/refund/       - Force refund
        subscriptions/             - Subscription list
        webhook-events/            - Stored Stripe events
        webhook-events/{id}/retry/ - Re-queue an event
    /api/v1/inquiries/             - Inquiry endpoints
        {id}/status/               - Accept, decline or complete

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/", include("authentication.urls")),
    # Billing
    path("billing/", include("billing.urls")),
    path("admin/billing/", include("billing.admin_urls")),
    # Inquiries
    path("inquiries/", include("marketplace.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Admin Portal"
admin.site.index_title = "Welcome to the Admin Portal"
