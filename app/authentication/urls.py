"""
URL configuration for authentication endpoints.

URL structure:
    /api/v1/auth/token/          - Obtain access/refresh JWT pair
    /api/v1/auth/token/refresh/  - Rotate refresh token
    /api/v1/auth/token/verify/   - Verify a token
"""

from django.urls import path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("token/verify/", TokenVerifyView.as_view(), name="token-verify"),
]
