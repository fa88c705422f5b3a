"""
Inquiry service: the owner-buyer contact flow that drives escrow outcomes.

Status changes and escrow settlement are deliberately decoupled: the
inquiry status is committed first, and a failed escrow release or refund
is logged with its own error code instead of undoing the status change.
The deposit stays HELD and can be settled from the admin API.

Usage:
    from marketplace.services import InquiryService

    inquiry = InquiryService.create_inquiry(
        owner_user, property_id, buyer_id=buyer_id, message="Hi"
    )
    InquiryService.update_status(buyer_user, inquiry.id, InquiryStatus.ACCEPTED)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction
from django_fsm import can_proceed

from core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService

from billing.services import EscrowService
from billing.state_machines import EscrowStatus, RefundReason
from marketplace.models import BuyerProfile, Inquiry, OwnerProfile, Property
from marketplace.states import InitiatedBy, InquiryStatus
from notifications.models import NotificationKind
from notifications.services import notify

if TYPE_CHECKING:
    from authentication.models import User


class InquiryService(BaseService):
    """
    Methods:
        create_inquiry: Owner contacts a buyer, or a buyer contacts an owner
        update_status: Accept / decline / complete, settling the escrow
    """

    @classmethod
    def create_inquiry(
        cls,
        user: User,
        property_id,
        buyer_id: int | None = None,
        message: str = "",
    ) -> Inquiry:
        """
        Open an inquiry about a property.

        The property's owner contacts a named buyer, and the matching held
        deposit is attached. Anyone else with a buyer profile contacts the
        owner about the property; no deposit is involved.

        Raises:
            NotFoundError: Unknown property or buyer
            PermissionDeniedError: Caller has neither profile
            ValidationError: Owner did not name a buyer
        """
        owner = OwnerProfile.objects.filter(user=user).first()
        own_buyer = BuyerProfile.objects.filter(user=user).first()
        if owner is None and own_buyer is None:
            raise PermissionDeniedError(
                "You need an owner or buyer profile to send inquiries",
                error_code="NO_PROFILE",
            )
        prop = Property.objects.select_related("owner__user").filter(pk=property_id).first()
        if prop is None or (own_buyer is None and prop.owner_id != owner.pk):
            raise NotFoundError("Property not found", error_code="PROPERTY_NOT_FOUND")

        if owner is not None and prop.owner_id == owner.pk:
            if buyer_id is None:
                raise ValidationError(
                    "buyer_id is required when the owner initiates",
                    error_code="BUYER_REQUIRED",
                    details={"buyer_id": ["This field is required."]},
                )
            buyer = BuyerProfile.objects.select_related("user").filter(pk=buyer_id).first()
            if buyer is None:
                raise NotFoundError("Buyer not found", error_code="BUYER_NOT_FOUND")
            initiated_by = InitiatedBy.OWNER
        else:
            buyer = own_buyer
            initiated_by = InitiatedBy.BUYER

        with transaction.atomic():
            inquiry = Inquiry.objects.create(
                owner=prop.owner,
                buyer=buyer,
                property=prop,
                initiated_by=initiated_by,
                message=message,
            )
            deposit = None
            if initiated_by == InitiatedBy.OWNER:
                deposit = EscrowService.link_inquiry(inquiry)

        cls.get_logger().info(
            "Inquiry created",
            extra={
                "inquiry_id": str(inquiry.id),
                "initiated_by": initiated_by,
                "escrow_id": str(deposit.id) if deposit else None,
            },
        )
        if initiated_by == InitiatedBy.OWNER:
            recipient = buyer.user
            title = "New inquiry about your wanted ad"
            body = f"An owner contacted you about {prop.address}."
        else:
            recipient = prop.owner.user
            title = "New inquiry about your property"
            body = f"A buyer asked about {prop.address}."
        notify(
            recipient=recipient,
            notification_type=NotificationKind.INQUIRY_RECEIVED,
            title=title,
            body=body,
            data={"inquiry_id": str(inquiry.id), "property_id": str(prop.id)},
            idempotency_key=f"inquiry_received:{inquiry.id}",
        )
        return inquiry

    @classmethod
    def _role_of(cls, user: User, inquiry: Inquiry) -> str | None:
        if inquiry.owner.user_id == user.pk:
            return InitiatedBy.OWNER
        if inquiry.buyer.user_id == user.pk:
            return InitiatedBy.BUYER
        return None

    @classmethod
    def update_status(cls, user: User, inquiry_id, new_status: str) -> Inquiry:
        """
        Change an inquiry's status and settle its escrow.

        ACCEPTED / DECLINED may only be set by the party that did not open
        the inquiry. COMPLETED may be set by either party. COMPLETED
        releases the linked deposit; DECLINED refunds it.

        Raises:
            NotFoundError: Unknown inquiry
            PermissionDeniedError: Caller is not allowed to make this change
            ValidationError: Transition not allowed from the current status
        """
        inquiry = (
            Inquiry.objects.select_related("owner", "buyer", "property")
            .filter(pk=inquiry_id)
            .first()
        )
        if inquiry is None:
            raise NotFoundError("Inquiry not found")

        role = cls._role_of(user, inquiry)
        if role is None:
            raise PermissionDeniedError("You are not a party to this inquiry")

        if new_status in (InquiryStatus.ACCEPTED, InquiryStatus.DECLINED):
            counterpart = InitiatedBy(inquiry.initiated_by).counterpart
            if role != counterpart:
                raise PermissionDeniedError(
                    "Only the recipient of an inquiry can accept or decline it",
                    error_code="NOT_RECIPIENT",
                )

        transitions = {
            InquiryStatus.ACCEPTED: inquiry.accept,
            InquiryStatus.DECLINED: inquiry.decline,
            InquiryStatus.COMPLETED: inquiry.complete,
        }
        transition = transitions.get(new_status)
        if transition is None:
            raise ValidationError(
                f"Cannot set inquiry status to {new_status}",
                error_code="INVALID_STATUS",
            )

        with transaction.atomic():
            locked = Inquiry.objects.select_for_update().get(pk=inquiry.pk)
            inquiry.status = locked.status
            if not can_proceed(transition):
                raise ValidationError(
                    f"Cannot change inquiry from {inquiry.status} to {new_status}",
                    error_code="INVALID_TRANSITION",
                    details={"current_status": inquiry.status},
                )
            transition()
            inquiry.save()

        cls.get_logger().info(
            "Inquiry status updated",
            extra={"inquiry_id": str(inquiry.id), "status": inquiry.status},
        )

        cls._settle_escrow(inquiry)
        cls._notify_other_party(inquiry, role)
        return inquiry

    @classmethod
    def _settle_escrow(cls, inquiry: Inquiry) -> None:
        deposit = getattr(inquiry, "escrow_deposit", None)
        if deposit is None or deposit.status != EscrowStatus.HELD:
            return
        if inquiry.status == InquiryStatus.COMPLETED:
            settle, error_code = EscrowService.release, "ESCROW_RELEASE_FAILED"
        elif inquiry.status == InquiryStatus.DECLINED:
            settle, error_code = (
                lambda pk: EscrowService.refund(pk, reason=RefundReason.INQUIRY_DECLINED),
                "ESCROW_REFUND_FAILED",
            )
        else:
            return
        # The status change is already committed; settlement is best effort.
        try:
            settle(deposit.id)
        except Exception as exc:
            cls.get_logger().error(
                "Escrow settlement failed after inquiry status change",
                extra={
                    "error_code": error_code,
                    "inquiry_id": str(inquiry.id),
                    "escrow_id": str(deposit.id),
                    "inquiry_status": inquiry.status,
                    "cause": getattr(exc, "error_code", type(exc).__name__),
                },
                exc_info=True,
            )

    @classmethod
    def _notify_other_party(cls, inquiry: Inquiry, actor_role: str) -> None:
        if actor_role == InitiatedBy.OWNER:
            recipient = inquiry.buyer.user
        else:
            recipient = inquiry.owner.user
        notify(
            recipient=recipient,
            notification_type=NotificationKind.INQUIRY_RESPONSE,
            title=f"Inquiry {inquiry.status}",
            body=f"Your inquiry about {inquiry.property.address} was {inquiry.status}.",
            data={"inquiry_id": str(inquiry.id), "status": inquiry.status},
            idempotency_key=f"inquiry_response:{inquiry.id}:{inquiry.status}",
        )
