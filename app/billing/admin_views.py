"""
Staff-only billing API.

Endpoints (prefix /api/v1/admin/billing/):
    POST escrows/<id>/release/           - Force release a HELD deposit
    POST escrows/<id>/refund/            - Force refund a HELD deposit
    POST process-expired-escrows/        - Run the expiry sweep now
    GET  settings/  PUT settings/        - Read / update billing settings
    GET  stats/                          - Dashboard totals
    GET  escrows/?status=                - Deposit list
    GET  subscriptions/?tier=&status=    - Subscription list
    GET  webhook-events/?status=         - Stored Stripe events
    POST webhook-events/<id>/retry/      - Re-queue a dead-lettered event

Security:
    - IsAdminUser on every endpoint
"""

from __future__ import annotations

import logging

from django.db import transaction
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError, NotFoundError
from core.views import error_response

from billing.models import EscrowDeposit, Subscription, WebhookEvent
from billing.pagination import AdminCursorPagination
from billing.serializers import (
    AdminRefundSerializer,
    EscrowDepositSerializer,
    SubscriptionSerializer,
    WebhookEventSerializer,
)
from billing.services import BillingAdminService, EscrowService
from billing.settings_store import billing_settings
from billing.state_machines import WebhookEventStatus
from billing.workers import sweep_expired_escrows

logger = logging.getLogger(__name__)


# =============================================================================
# Escrow overrides
# =============================================================================


class AdminEscrowReleaseView(APIView):
    """
    POST /api/v1/admin/billing/escrows/<id>/release/

    Response:
        200 OK: Released deposit
        404 Not Found: Unknown deposit
        409 Conflict: Deposit is not HELD (INVALID_STATUS)
        502 Bad Gateway: Capture failed, deposit still HELD
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_release_escrow",
        summary="Force release escrow",
        request=None,
        responses={
            200: OpenApiResponse(response=EscrowDepositSerializer, description="Released"),
            404: OpenApiResponse(description="Deposit not found"),
            409: OpenApiResponse(description="Deposit not held"),
            502: OpenApiResponse(description="Payment processor error"),
        },
        tags=["Admin - Billing"],
    )
    def post(self, request, escrow_id):
        try:
            deposit = EscrowService.release(escrow_id)
        except BaseApplicationError as exc:
            return error_response(exc)

        logger.info(
            "Admin released escrow",
            extra={"escrow_id": str(escrow_id), "admin_id": request.user.pk},
        )
        return Response(EscrowDepositSerializer(deposit).data)


class AdminEscrowRefundView(APIView):
    """
    POST /api/v1/admin/billing/escrows/<id>/refund/

    Request body (optional):
        {"reason": "admin"}

    Always ends in REFUNDED; EXPIRED is only set by the expiry sweep.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_refund_escrow",
        summary="Force refund escrow",
        request=AdminRefundSerializer,
        responses={
            200: OpenApiResponse(response=EscrowDepositSerializer, description="Refunded"),
            404: OpenApiResponse(description="Deposit not found"),
            409: OpenApiResponse(description="Deposit not held"),
            502: OpenApiResponse(description="Payment processor error"),
        },
        tags=["Admin - Billing"],
    )
    def post(self, request, escrow_id):
        serializer = AdminRefundSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            deposit = EscrowService.refund(
                escrow_id, reason=serializer.validated_data["reason"]
            )
        except BaseApplicationError as exc:
            return error_response(exc)

        logger.info(
            "Admin refunded escrow",
            extra={"escrow_id": str(escrow_id), "admin_id": request.user.pk},
        )
        return Response(EscrowDepositSerializer(deposit).data)


class AdminProcessExpiredEscrowsView(APIView):
    """POST /api/v1/admin/billing/process-expired-escrows/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_process_expired_escrows",
        summary="Run escrow expiry sweep",
        request=None,
        responses={200: OpenApiResponse(description="{processed, refunded, errors}")},
        tags=["Admin - Billing"],
    )
    def post(self, request):
        result = sweep_expired_escrows()
        logger.info(
            "Admin ran escrow expiry sweep",
            extra={"admin_id": request.user.pk, "refunded": result["refunded"]},
        )
        return Response(result)


# =============================================================================
# Settings and stats
# =============================================================================


class AdminBillingSettingsView(APIView):
    """
    GET /api/v1/admin/billing/settings/
    PUT /api/v1/admin/billing/settings/

    PUT accepts any subset of settings. The response reflects the stored
    values; the settings cache is already invalidated when it is sent.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_get_billing_settings",
        summary="Get billing settings",
        responses={200: OpenApiResponse(description="Current settings")},
        tags=["Admin - Billing"],
    )
    def get(self, request):
        return Response(billing_settings.get().to_dict())

    @extend_schema(
        operation_id="admin_update_billing_settings",
        summary="Update billing settings",
        request=dict,
        responses={
            200: OpenApiResponse(description="Updated settings"),
            400: OpenApiResponse(description="Invalid settings (INVALID_SETTINGS)"),
        },
        tags=["Admin - Billing"],
    )
    def put(self, request):
        if not isinstance(request.data, dict):
            return Response(
                {"error": "Expected a JSON object", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            updated = billing_settings.update(dict(request.data), actor=request.user)
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(updated.to_dict())


class AdminBillingStatsView(APIView):
    """GET /api/v1/admin/billing/stats/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_billing_stats",
        summary="Billing statistics",
        responses={200: OpenApiResponse(description="Totals")},
        tags=["Admin - Billing"],
    )
    def get(self, request):
        return Response(BillingAdminService.get_stats())


# =============================================================================
# Lists
# =============================================================================


class AdminEscrowListView(generics.ListAPIView):
    """GET /api/v1/admin/billing/escrows/?status=held"""

    permission_classes = [IsAdminUser]
    serializer_class = EscrowDepositSerializer
    pagination_class = AdminCursorPagination

    @extend_schema(
        operation_id="admin_list_escrows",
        summary="List escrow deposits",
        parameters=[OpenApiParameter("status", str, required=False)],
        tags=["Admin - Billing"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        queryset = EscrowDeposit.objects.all()
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset


class AdminSubscriptionListView(generics.ListAPIView):
    """GET /api/v1/admin/billing/subscriptions/?tier=pro&status=active"""

    permission_classes = [IsAdminUser]
    serializer_class = SubscriptionSerializer
    pagination_class = AdminCursorPagination

    @extend_schema(
        operation_id="admin_list_subscriptions",
        summary="List subscriptions",
        parameters=[
            OpenApiParameter("tier", str, required=False),
            OpenApiParameter("status", str, required=False),
        ],
        tags=["Admin - Billing"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        queryset = Subscription.objects.select_related("user")
        params = self.request.query_params
        if params.get("tier"):
            queryset = queryset.filter(tier=params["tier"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset


class AdminWebhookEventListView(generics.ListAPIView):
    """GET /api/v1/admin/billing/webhook-events/?status=dead_lettered"""

    permission_classes = [IsAdminUser]
    serializer_class = WebhookEventSerializer
    pagination_class = AdminCursorPagination

    @extend_schema(
        operation_id="admin_list_webhook_events",
        summary="List stored webhook events",
        parameters=[OpenApiParameter("status", str, required=False)],
        tags=["Admin - Billing"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        queryset = WebhookEvent.objects.all()
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset


class AdminWebhookEventRetryView(APIView):
    """
    POST /api/v1/admin/billing/webhook-events/<id>/retry/

    Only DEAD_LETTERED or FAILED events can be re-queued.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_retry_webhook_event",
        summary="Re-queue webhook event",
        request=None,
        responses={
            202: OpenApiResponse(response=WebhookEventSerializer, description="Queued"),
            404: OpenApiResponse(description="Event not found"),
            409: OpenApiResponse(description="Event is not failed or dead-lettered"),
        },
        tags=["Admin - Billing"],
    )
    def post(self, request, event_id):
        from billing.tasks import process_webhook_event

        with transaction.atomic():
            webhook_event = (
                WebhookEvent.objects.select_for_update().filter(pk=event_id).first()
            )
            if webhook_event is None:
                return error_response(NotFoundError("Webhook event not found"))
            if webhook_event.status not in (
                WebhookEventStatus.DEAD_LETTERED,
                WebhookEventStatus.FAILED,
            ):
                return Response(
                    {
                        "error": f"Webhook event is {webhook_event.status}",
                        "error_code": "INVALID_STATUS",
                    },
                    status=status.HTTP_409_CONFLICT,
                )
            webhook_event.requeue()
            webhook_event.save()

        transaction.on_commit(lambda: process_webhook_event.delay(str(webhook_event.id)))
        logger.info(
            "Admin re-queued webhook event",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "admin_id": request.user.pk,
            },
        )
        return Response(
            WebhookEventSerializer(webhook_event).data,
            status=status.HTTP_202_ACCEPTED,
        )
