"""
DRF views for billing.

Endpoints:
    GET  /api/v1/billing/pricing/          - Public price list
    GET  /api/v1/billing/subscription/     - Current plan and limits
    POST /api/v1/billing/checkout/         - Pro checkout session
    POST /api/v1/billing/portal/           - Customer portal session
    POST /api/v1/billing/escrow/quote/     - Finder's fee quote
    POST /api/v1/billing/escrow/create/    - Start deposit payment
    POST /api/v1/billing/escrow/confirm/   - Confirm held funds
    GET  /api/v1/billing/escrow/check/     - Contact access check

Security:
    - Everything except pricing requires authentication
    - Escrow endpoints act on the caller's owner profile only
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.views import error_response

from billing.serializers import (
    CheckoutSerializer,
    EscrowCheckSerializer,
    EscrowConfirmSerializer,
    EscrowDepositSerializer,
    EscrowIntentSerializer,
    EscrowQuoteSerializer,
    EscrowTargetSerializer,
    PortalSerializer,
    SessionSerializer,
)
from billing.services import EscrowService, SubscriptionService


# =============================================================================
# Subscription self-service
# =============================================================================


class PricingView(APIView):
    """
    Public price list and per-tier feature tables.

    GET /api/v1/billing/pricing/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_pricing",
        summary="Get pricing",
        description="Pro prices and the feature limits of each tier. Unlimited limits are null.",
        responses={200: OpenApiResponse(description="Pricing")},
        tags=["Billing - Subscription"],
    )
    def get(self, request):
        return Response(SubscriptionService.get_pricing())


class SubscriptionView(APIView):
    """
    Current user's subscription.

    GET /api/v1/billing/subscription/

    Users without a subscription record are reported as FREE / ACTIVE.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription",
        summary="Get current subscription",
        responses={
            200: OpenApiResponse(description="Subscription with resolved limits"),
            401: OpenApiResponse(description="Authentication required"),
        },
        tags=["Billing - Subscription"],
    )
    def get(self, request):
        return Response(SubscriptionService.get_user_subscription(request.user))


class CheckoutView(APIView):
    """
    Create a Stripe Checkout session for the Pro plan.

    POST /api/v1/billing/checkout/

    Request body:
        {"interval": "monthly" | "yearly"}

    Response:
        200 OK: {"url": "https://checkout.stripe.com/..."}
        400 Bad Request: Yearly billing unavailable
        409 Conflict: Already subscribed
        503 Service Unavailable: Stripe not configured
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_checkout_session",
        summary="Start Pro checkout",
        request=CheckoutSerializer,
        responses={
            200: OpenApiResponse(response=SessionSerializer, description="Checkout URL"),
            400: OpenApiResponse(description="Invalid interval or yearly disabled"),
            409: OpenApiResponse(description="Already subscribed"),
            503: OpenApiResponse(description="Payments not configured"),
        },
        tags=["Billing - Subscription"],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            session = SubscriptionService.create_checkout(
                request.user, **serializer.validated_data
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response({"url": session.url})


class PortalView(APIView):
    """
    Create a Stripe Customer Portal session.

    POST /api/v1/billing/portal/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_portal_session",
        summary="Open billing portal",
        request=PortalSerializer,
        responses={
            200: OpenApiResponse(response=SessionSerializer, description="Portal URL"),
            400: OpenApiResponse(description="No billing account yet"),
            503: OpenApiResponse(description="Payments not configured"),
        },
        tags=["Billing - Subscription"],
    )
    def post(self, request):
        serializer = PortalSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            session = SubscriptionService.create_portal(
                request.user, **serializer.validated_data
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response({"url": session.url})


# =============================================================================
# Escrow
# =============================================================================


class EscrowQuoteView(APIView):
    """
    Quote the finder's fee for contacting a buyer about a property.

    POST /api/v1/billing/escrow/quote/

    Request body:
        {"property_id": "<uuid>", "buyer_id": 12}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="quote_escrow",
        summary="Quote finder's fee",
        request=EscrowTargetSerializer,
        responses={
            200: OpenApiResponse(response=EscrowQuoteSerializer, description="Fee quote"),
            400: OpenApiResponse(description="Property has no valuation"),
            403: OpenApiResponse(description="Caller is not an owner"),
            404: OpenApiResponse(description="Property or buyer not found"),
            409: OpenApiResponse(description="Deposit already held (ESCROW_EXISTS)"),
        },
        tags=["Billing - Escrow"],
    )
    def post(self, request):
        serializer = EscrowTargetSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            quote = EscrowService.quote(
                request.user,
                serializer.validated_data["property_id"],
                serializer.validated_data["buyer_id"],
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(quote.to_dict())


class EscrowCreateView(APIView):
    """
    Create (or resume) a deposit payment.

    POST /api/v1/billing/escrow/create/

    Returns the PaymentIntent client secret for the browser to confirm.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_escrow",
        summary="Start deposit payment",
        request=EscrowTargetSerializer,
        responses={
            201: OpenApiResponse(response=EscrowIntentSerializer, description="Intent created"),
            403: OpenApiResponse(description="Caller is not an owner"),
            404: OpenApiResponse(description="Property or buyer not found"),
            409: OpenApiResponse(description="Deposit already held (ESCROW_EXISTS)"),
            502: OpenApiResponse(description="Payment processor error"),
            503: OpenApiResponse(description="Payments not configured"),
        },
        tags=["Billing - Escrow"],
    )
    def post(self, request):
        serializer = EscrowTargetSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            intent = EscrowService.create_intent(
                request.user,
                serializer.validated_data["property_id"],
                serializer.validated_data["buyer_id"],
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(intent.to_dict(), status=status.HTTP_201_CREATED)


class EscrowConfirmView(APIView):
    """
    Confirm that the processor holds the deposit funds.

    POST /api/v1/billing/escrow/confirm/

    Request body:
        {"payment_intent_id": "pi_xxx"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="confirm_escrow",
        summary="Confirm deposit",
        request=EscrowConfirmSerializer,
        responses={
            200: OpenApiResponse(response=EscrowDepositSerializer, description="Deposit held"),
            400: OpenApiResponse(description="Payment not authorised"),
            404: OpenApiResponse(description="Deposit not found"),
            409: OpenApiResponse(description="Deposit already held or settled"),
        },
        tags=["Billing - Escrow"],
    )
    def post(self, request):
        serializer = EscrowConfirmSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            deposit = EscrowService.confirm(
                request.user, serializer.validated_data["payment_intent_id"]
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(EscrowDepositSerializer(deposit).data)


class EscrowCheckView(APIView):
    """
    Whether the caller may contact a buyer about a property.

    GET /api/v1/billing/escrow/check/?property_id=<uuid>&buyer_id=<id>
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="check_escrow",
        summary="Check contact access",
        parameters=[
            OpenApiParameter("property_id", str, required=True),
            OpenApiParameter("buyer_id", int, required=True),
        ],
        responses={
            200: OpenApiResponse(response=EscrowCheckSerializer, description="Access state"),
            403: OpenApiResponse(description="Caller is not an owner"),
        },
        tags=["Billing - Escrow"],
    )
    def get(self, request):
        serializer = EscrowTargetSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = EscrowService.check(
                request.user,
                serializer.validated_data["property_id"],
                serializer.validated_data["buyer_id"],
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(result)
