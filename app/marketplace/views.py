"""
Inquiry endpoints.

Endpoints:
    POST  /api/v1/inquiries/               - Owner contacts a buyer, or buyer an owner
    PATCH /api/v1/inquiries/<id>/status/   - Accept, decline or complete

Completing an inquiry releases its escrow deposit; declining refunds it.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.views import error_response

from marketplace.serializers import (
    InquiryCreateSerializer,
    InquirySerializer,
    InquiryStatusSerializer,
)
from marketplace.services import InquiryService


class InquiryCreateView(APIView):
    """
    POST /api/v1/inquiries/

    Request body:
        {"property_id": "<uuid>", "buyer_id": 12, "message": "..."}

    Owners name the buyer; buyers omit buyer_id.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_inquiry",
        summary="Open an inquiry",
        request=InquiryCreateSerializer,
        responses={
            201: OpenApiResponse(response=InquirySerializer, description="Inquiry created"),
            400: OpenApiResponse(description="Owner did not name a buyer"),
            403: OpenApiResponse(description="Caller has no owner or buyer profile"),
            404: OpenApiResponse(description="Property or buyer not found"),
        },
        tags=["Inquiries"],
    )
    def post(self, request):
        serializer = InquiryCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            inquiry = InquiryService.create_inquiry(
                request.user,
                property_id=serializer.validated_data["property_id"],
                buyer_id=serializer.validated_data.get("buyer_id"),
                message=serializer.validated_data["message"],
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(InquirySerializer(inquiry).data, status=status.HTTP_201_CREATED)


class InquiryStatusView(APIView):
    """
    PATCH /api/v1/inquiries/<id>/status/

    Request body:
        {"status": "accepted" | "declined" | "completed"}

    Response:
        200 OK: Updated inquiry
        400 Bad Request: Transition not allowed from the current status
        403 Forbidden: Not a party, or not the recipient for accept/decline
        404 Not Found: Unknown inquiry
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="update_inquiry_status",
        summary="Update inquiry status",
        request=InquiryStatusSerializer,
        responses={
            200: OpenApiResponse(response=InquirySerializer, description="Updated"),
            400: OpenApiResponse(description="Invalid transition"),
            403: OpenApiResponse(description="Not allowed"),
            404: OpenApiResponse(description="Inquiry not found"),
        },
        tags=["Inquiries"],
    )
    def patch(self, request, inquiry_id):
        serializer = InquiryStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            inquiry = InquiryService.update_status(
                request.user, inquiry_id, serializer.validated_data["status"]
            )
        except BaseApplicationError as exc:
            return error_response(exc)
        return Response(InquirySerializer(inquiry).data)
