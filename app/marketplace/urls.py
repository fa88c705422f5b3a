from django.urls import path

from marketplace import views

app_name = "marketplace"

urlpatterns = [
    path("", views.InquiryCreateView.as_view(), name="inquiry-create"),
    path(
        "<uuid:inquiry_id>/status/",
        views.InquiryStatusView.as_view(),
        name="inquiry-status",
    ),
]
