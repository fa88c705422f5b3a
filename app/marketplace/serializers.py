"""Serializers for the inquiry endpoints."""

from rest_framework import serializers

from marketplace.models import Inquiry
from marketplace.states import InquiryStatus


class InquiryCreateSerializer(serializers.Serializer):
    """``buyer_id`` is required when the property owner initiates."""

    buyer_id = serializers.IntegerField(min_value=1, required=False)
    property_id = serializers.UUIDField()
    message = serializers.CharField(required=False, allow_blank=True, default="")


class InquiryStatusSerializer(serializers.Serializer):
    """PENDING is the initial state and cannot be set."""

    status = serializers.ChoiceField(
        choices=[
            InquiryStatus.ACCEPTED,
            InquiryStatus.DECLINED,
            InquiryStatus.COMPLETED,
        ]
    )


class InquirySerializer(serializers.ModelSerializer):
    escrow_id = serializers.SerializerMethodField()

    class Meta:
        model = Inquiry
        fields = [
            "id",
            "owner",
            "buyer",
            "property",
            "initiated_by",
            "status",
            "message",
            "responded_at",
            "escrow_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_escrow_id(self, obj: Inquiry) -> str | None:
        deposit = getattr(obj, "escrow_deposit", None)
        return str(deposit.id) if deposit else None
