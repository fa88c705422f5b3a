"""
Marketplace models.

- OwnerProfile / BuyerProfile: the two roles a User can hold
- Property: a listing owned by an OwnerProfile, valued for fee tiers
- Inquiry: the contact thread an escrow deposit gates

Usage:
    from marketplace.models import Inquiry
    from marketplace.states import InquiryStatus

    inquiry.accept()
    inquiry.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from marketplace.states import InitiatedBy, InquiryStatus


class OwnerProfile(BaseModel):
    """Property-owner role of a user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owner_profile",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"OwnerProfile({self.user_id})"


class BuyerProfile(BaseModel):
    """Buyer role of a user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="buyer_profile",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"BuyerProfile({self.user_id})"


class Property(UUIDPrimaryKeyMixin, BaseModel):
    """
    A property an owner may pay a finder's fee for.

    Fields:
        estimated_value: Owner or agent estimate, whole currency units
        rateable_value: Council valuation, used when no estimate exists
    """

    owner = models.ForeignKey(
        OwnerProfile,
        on_delete=models.CASCADE,
        related_name="properties",
    )
    address = models.CharField(max_length=255)
    estimated_value = models.PositiveBigIntegerField(null=True, blank=True)
    rateable_value = models.PositiveBigIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "properties"

    def __str__(self) -> str:
        return self.address


class Inquiry(UUIDPrimaryKeyMixin, BaseModel):
    """
    Communication thread between one owner and one buyer about one property.

    State Flow:
        PENDING -> ACCEPTED -> COMPLETED
        PENDING -> DECLINED
        PENDING -> COMPLETED

    Only the counterpart of ``initiated_by`` may accept or decline; that
    rule is enforced in InquiryService, not here.
    """

    owner = models.ForeignKey(
        OwnerProfile,
        on_delete=models.CASCADE,
        related_name="inquiries",
    )
    buyer = models.ForeignKey(
        BuyerProfile,
        on_delete=models.CASCADE,
        related_name="inquiries",
    )
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="inquiries",
    )
    initiated_by = models.CharField(
        max_length=10,
        choices=InitiatedBy.choices,
    )
    status = FSMField(
        default=InquiryStatus.PENDING,
        choices=InquiryStatus.choices,
        db_index=True,
    )
    message = models.TextField(blank=True, default="")
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "inquiries"
        indexes = [
            models.Index(
                fields=["owner", "buyer", "property"], name="inquiry_triple_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"Inquiry({self.id}, {self.status})"

    @transition(
        field=status,
        source=InquiryStatus.PENDING,
        target=InquiryStatus.ACCEPTED,
    )
    def accept(self):
        self.responded_at = timezone.now()

    @transition(
        field=status,
        source=InquiryStatus.PENDING,
        target=InquiryStatus.DECLINED,
    )
    def decline(self):
        self.responded_at = timezone.now()

    @transition(
        field=status,
        source=[InquiryStatus.PENDING, InquiryStatus.ACCEPTED],
        target=InquiryStatus.COMPLETED,
    )
    def complete(self):
        if self.responded_at is None:
            self.responded_at = timezone.now()
