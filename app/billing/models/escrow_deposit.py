"""
EscrowDeposit model: a finder's fee held pending an inquiry outcome.

One deposit per (owner, property, buyer) payment attempt. The amount is
authorised with a manual-capture PaymentIntent and either captured
(released to the platform) or cancelled (refunded to the owner).

Usage:
    from billing.models import EscrowDeposit
    from billing.state_machines import EscrowStatus

    deposit = EscrowDeposit.objects.create(
        owner=owner_profile,
        buyer=buyer_profile,
        property=prop,
        amount_cents=49900,
        stripe_payment_intent_id="pi_xxx",
    )
    deposit.hold(expiry_days=30)  # pending -> held
    deposit.save()

    # Terminal transitions go through EscrowDeposit.objects.transition_from_held()
    # so concurrent callers race on a single conditional UPDATE.
"""

from __future__ import annotations

from datetime import timedelta

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import VersionedModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import EscrowStatus, RefundReason


class EscrowDepositQuerySet(models.QuerySet):
    def for_triple(self, owner_id, property_id, buyer_id) -> EscrowDepositQuerySet:
        return self.filter(owner_id=owner_id, property_id=property_id, buyer_id=buyer_id)

    def held(self) -> EscrowDepositQuerySet:
        return self.filter(status=EscrowStatus.HELD)

    def expired_held(self, now=None) -> EscrowDepositQuerySet:
        """HELD deposits whose deadline has passed, oldest deadline first."""
        now = now or timezone.now()
        return self.held().filter(expires_at__lt=now).order_by("expires_at")

    def transition_from_held(self, pk, target: str, **fields) -> int:
        """
        Move one deposit out of HELD with a single conditional UPDATE.

        Compare-and-swap on status: the row changes only if it is still
        HELD at write time. Returns the affected row count (0 or 1);
        callers treat 0 as "someone else got there first".
        """
        return self.filter(pk=pk, status=EscrowStatus.HELD).update(
            status=target,
            version=F("version") + 1,
            updated_at=timezone.now(),
            **fields,
        )


class EscrowDeposit(UUIDPrimaryKeyMixin, VersionedModel):
    """
    A held finder's-fee payment gating one owner-buyer contact.

    State Flow:
        PENDING -> HELD (confirm step, processor reports funds authorised)
        HELD -> RELEASED (inquiry completed, or admin)
        HELD -> REFUNDED (inquiry declined, or admin)
        HELD -> EXPIRED (expiry sweep)

    Fields:
        amount_cents: Fee in minor units; fixed at creation
        stripe_payment_intent_id: Processor reference; fixed at creation
        expires_at: Deadline after which the sweep refunds an unresolved deposit
        refund_reason: Set together with refunded_at
    """

    owner = models.ForeignKey(
        "marketplace.OwnerProfile",
        on_delete=models.PROTECT,
        related_name="escrow_deposits",
    )
    buyer = models.ForeignKey(
        "marketplace.BuyerProfile",
        on_delete=models.PROTECT,
        related_name="escrow_deposits",
    )
    property = models.ForeignKey(
        "marketplace.Property",
        on_delete=models.PROTECT,
        related_name="escrow_deposits",
    )
    inquiry = models.OneToOneField(
        "marketplace.Inquiry",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="escrow_deposit",
    )

    # ==========================================================================
    # Money
    # ==========================================================================

    amount_cents = models.PositiveIntegerField(
        help_text="Finder's fee in smallest currency unit",
    )
    currency = models.CharField(max_length=3, default="nzd")
    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=EscrowStatus.PENDING,
        choices=EscrowStatus.choices,
        db_index=True,
    )
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    held_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_reason = models.CharField(
        max_length=20,
        choices=RefundReason.choices,
        blank=True,
        default="",
    )

    objects = EscrowDepositQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Escrow Deposit"
        verbose_name_plural = "Escrow Deposits"
        indexes = [
            models.Index(fields=["status", "expires_at"], name="escrow_status_expiry_idx"),
            models.Index(fields=["owner", "property", "buyer"], name="escrow_triple_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "property", "buyer"],
                condition=Q(status=EscrowStatus.HELD),
                name="escrow_one_held_per_triple",
            ),
            models.UniqueConstraint(
                fields=["owner", "property", "buyer"],
                condition=Q(status=EscrowStatus.PENDING),
                name="escrow_one_pending_per_triple",
            ),
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="escrow_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(released_at__isnull=True) | Q(refunded_at__isnull=True),
                name="escrow_released_xor_refunded",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"EscrowDeposit({self.id}, {self.status}, "
            f"{self.amount_cents / 100:.2f} {self.currency.upper()})"
        )

    @transition(
        field=status,
        source=EscrowStatus.PENDING,
        target=EscrowStatus.HELD,
    )
    def hold(self, expiry_days: int):
        """
        Record that the processor holds the funds.

        Transition: PENDING -> HELD
        """
        now = timezone.now()
        self.held_at = now
        self.expires_at = now + timedelta(days=expiry_days)
