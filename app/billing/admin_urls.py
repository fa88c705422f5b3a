"""
URL configuration for the staff billing API.

All routes are prefixed with /api/v1/admin/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing import admin_views

app_name = "billing-admin"

urlpatterns = [
    path("stats/", admin_views.AdminBillingStatsView.as_view(), name="stats"),
    path("settings/", admin_views.AdminBillingSettingsView.as_view(), name="settings"),
    path(
        "process-expired-escrows/",
        admin_views.AdminProcessExpiredEscrowsView.as_view(),
        name="process-expired-escrows",
    ),
    path("escrows/", admin_views.AdminEscrowListView.as_view(), name="escrow-list"),
    path(
        "escrows/<uuid:escrow_id>/release/",
        admin_views.AdminEscrowReleaseView.as_view(),
        name="escrow-release",
    ),
    path(
        "escrows/<uuid:escrow_id>/refund/",
        admin_views.AdminEscrowRefundView.as_view(),
        name="escrow-refund",
    ),
    path(
        "subscriptions/",
        admin_views.AdminSubscriptionListView.as_view(),
        name="subscription-list",
    ),
    path(
        "webhook-events/",
        admin_views.AdminWebhookEventListView.as_view(),
        name="webhook-event-list",
    ),
    path(
        "webhook-events/<uuid:event_id>/retry/",
        admin_views.AdminWebhookEventRetryView.as_view(),
        name="webhook-event-retry",
    ),
]
