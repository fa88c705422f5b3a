"""
Escrow service: the finder's-fee deposit lifecycle.

State machine:
    PENDING ──confirm──► HELD ──release──► RELEASED
                              ├─refund───► REFUNDED
                              └─refund(expired)─► EXPIRED

Leaving HELD is a compare-and-swap: one conditional UPDATE guarded by
``status='held'``. Whichever caller's UPDATE affects the row wins; every
other caller gets InvalidStateTransitionError and makes no processor call.
The processor call runs inside the same transaction as the UPDATE, so a
processor failure rolls the status back and the deposit stays HELD.

Usage:
    from billing.services import EscrowService
    from billing.state_machines import RefundReason

    quote = EscrowService.quote(request.user, property_id, buyer_id)
    intent = EscrowService.create_intent(request.user, property_id, buyer_id)
    deposit = EscrowService.confirm(request.user, intent.payment_intent_id)

    EscrowService.release(deposit.id)
    EscrowService.refund(deposit.id, reason=RefundReason.INQUIRY_DECLINED)
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.services import BaseService

from billing.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from billing.exceptions import (
    EscrowAlreadyExistsError,
    InvalidStateTransitionError,
    StripeError,
    StripeInvalidRequestError,
)
from billing.fees import (
    calculate_fee,
    format_amount,
    resolve_property_value,
    tier_label,
    tier_name,
)
from billing.models import EscrowDeposit
from billing.services.subscription_service import SubscriptionService
from billing.settings_store import billing_settings
from billing.state_machines import EscrowStatus, RefundReason
from marketplace.models import BuyerProfile, OwnerProfile, Property
from notifications.models import NotificationKind
from notifications.services import notify

if TYPE_CHECKING:
    from authentication.models import User
    from marketplace.models import Inquiry


PAYMENT_DESCRIPTION = "Finder's Fee Deposit"


@dataclass
class EscrowQuote:
    amount_cents: int
    amount_formatted: str
    tier: str
    tier_label: str
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EscrowIntent:
    """What the client needs to collect payment for a PENDING deposit."""

    escrow_id: uuid.UUID
    payment_intent_id: str
    client_secret: str | None
    amount_cents: int
    amount_formatted: str
    currency: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["escrow_id"] = str(self.escrow_id)
        return data


class EscrowService(BaseService):
    """
    Service for escrow deposit operations.

    Methods:
        quote: Fee for contacting a buyer about a property
        create_intent: Start payment (PENDING deposit + PaymentIntent)
        confirm: PENDING -> HELD once the processor holds the funds
        check: Whether the owner may contact the buyer
        release: HELD -> RELEASED, capture funds
        refund: HELD -> REFUNDED / EXPIRED, cancel the authorisation
        link_inquiry: Attach a HELD deposit to its inquiry
    """

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def _owner_profile(cls, user: User) -> OwnerProfile:
        owner = OwnerProfile.objects.filter(user=user).first()
        if owner is None:
            raise PermissionDeniedError(
                "You must be a property owner", error_code="NOT_OWNER"
            )
        return owner

    @classmethod
    def _resolve_parties(
        cls, owner_user: User, property_id, buyer_id
    ) -> tuple[OwnerProfile, Property, BuyerProfile]:
        owner = cls._owner_profile(owner_user)
        prop = Property.objects.filter(pk=property_id, owner=owner).first()
        if prop is None:
            raise NotFoundError(
                "Property not found",
                error_code="PROPERTY_NOT_FOUND",
                details={"property_id": str(property_id)},
            )
        buyer = BuyerProfile.objects.filter(pk=buyer_id).first()
        if buyer is None:
            raise NotFoundError(
                "Buyer not found",
                error_code="BUYER_NOT_FOUND",
                details={"buyer_id": str(buyer_id)},
            )
        return owner, prop, buyer

    @classmethod
    def _reject_if_held(cls, owner, prop, buyer) -> None:
        held = (
            EscrowDeposit.objects.for_triple(owner.pk, prop.pk, buyer.pk)
            .held()
            .only("id")
            .first()
        )
        if held is not None:
            raise EscrowAlreadyExistsError(held.id)

    @classmethod
    def get_deposit(cls, deposit_id) -> EscrowDeposit:
        deposit = (
            EscrowDeposit.objects.select_related("owner__user")
            .filter(pk=deposit_id)
            .first()
        )
        if deposit is None:
            raise NotFoundError(
                "Escrow deposit not found",
                details={"escrow_id": str(deposit_id)},
            )
        return deposit

    # =========================================================================
    # Payment
    # =========================================================================

    @classmethod
    def quote(cls, owner_user: User, property_id, buyer_id) -> EscrowQuote:
        """
        Price the finder's fee for one owner / property / buyer.

        Raises:
            PermissionDeniedError: Caller has no owner profile
            NotFoundError: Property not owned by caller, or buyer missing
            EscrowAlreadyExistsError: A HELD deposit already exists
            ValidationError: Property has no valuation
        """
        owner, prop, buyer = cls._resolve_parties(owner_user, property_id, buyer_id)
        cls._reject_if_held(owner, prop, buyer)

        current = billing_settings.get()
        value = resolve_property_value(prop)
        amount = calculate_fee(value, current)
        tier = tier_name(value, current)
        return EscrowQuote(
            amount_cents=amount,
            amount_formatted=format_amount(amount),
            tier=tier,
            tier_label=tier_label(tier),
            currency=settings.BILLING_CURRENCY.upper(),
        )

    @classmethod
    def create_intent(cls, owner_user: User, property_id, buyer_id) -> EscrowIntent:
        """
        Create (or resume) a PENDING deposit with a manual-capture PaymentIntent.

        A PENDING deposit for the same triple is reused, so a client that
        retries gets the same PaymentIntent instead of a second charge.

        Raises:
            EscrowAlreadyExistsError: A HELD deposit already exists
            StripeNotConfiguredError: Stripe is not configured
            StripeError: PaymentIntent creation failed
        """
        owner, prop, buyer = cls._resolve_parties(owner_user, property_id, buyer_id)
        cls._reject_if_held(owner, prop, buyer)

        triple = EscrowDeposit.objects.for_triple(owner.pk, prop.pk, buyer.pk)
        pending = triple.filter(status=EscrowStatus.PENDING).first()
        if pending is not None:
            resumed = cls._resume_pending(pending)
            if resumed is not None:
                return resumed

        value = resolve_property_value(prop)
        amount = calculate_fee(value)
        currency = settings.BILLING_CURRENCY
        customer_id = SubscriptionService.get_or_create_customer(owner_user)

        attempt = triple.count() + 1
        intent = StripeAdapter.create_payment_intent(
            CreatePaymentIntentParams(
                amount_cents=amount,
                currency=currency,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "escrow_intent", f"{owner.pk}:{prop.pk}:{buyer.pk}", attempt
                ),
                capture_method="manual",
                description=PAYMENT_DESCRIPTION,
                customer_id=customer_id,
                metadata={
                    "type": "escrow",
                    "owner_id": str(owner.pk),
                    "property_id": str(prop.pk),
                    "buyer_id": str(buyer.pk),
                },
            )
        )

        try:
            with transaction.atomic():
                deposit = EscrowDeposit.objects.create(
                    owner=owner,
                    buyer=buyer,
                    property=prop,
                    amount_cents=amount,
                    currency=currency,
                    stripe_payment_intent_id=intent.id,
                )
        except IntegrityError:
            # A concurrent request created the PENDING row first.
            deposit = triple.filter(status=EscrowStatus.PENDING).first()
            if deposit is None:
                raise

        cls.get_logger().info(
            "Escrow payment intent created",
            extra={
                "escrow_id": str(deposit.id),
                "payment_intent_id": intent.id,
                "amount_cents": amount,
            },
        )
        return EscrowIntent(
            escrow_id=deposit.id,
            payment_intent_id=deposit.stripe_payment_intent_id,
            client_secret=intent.client_secret,
            amount_cents=deposit.amount_cents,
            amount_formatted=format_amount(deposit.amount_cents),
            currency=deposit.currency,
        )

    @classmethod
    def _resume_pending(cls, pending: EscrowDeposit) -> EscrowIntent | None:
        """
        Return the intent of an open PENDING deposit, or None if it is dead.

        A PENDING deposit whose PaymentIntent was canceled on the processor
        side is removed so a fresh one can be created.
        """
        intent = StripeAdapter.retrieve_payment_intent(pending.stripe_payment_intent_id)
        if intent.status == "canceled":
            EscrowDeposit.objects.filter(
                pk=pending.pk, status=EscrowStatus.PENDING
            ).delete()
            return None
        return EscrowIntent(
            escrow_id=pending.id,
            payment_intent_id=pending.stripe_payment_intent_id,
            client_secret=intent.client_secret,
            amount_cents=pending.amount_cents,
            amount_formatted=format_amount(pending.amount_cents),
            currency=pending.currency,
        )

    @classmethod
    def confirm(cls, owner_user: User, payment_intent_id: str) -> EscrowDeposit:
        """
        Move a PENDING deposit to HELD once its funds are authorised.

        Idempotent: confirming a HELD deposit returns it unchanged.

        Raises:
            NotFoundError: No deposit for this PaymentIntent and owner
            ValidationError: Processor has not authorised the funds
            InvalidStateTransitionError: Deposit already left HELD
            EscrowAlreadyExistsError: Another deposit is HELD for the triple
        """
        owner = cls._owner_profile(owner_user)
        deposit = EscrowDeposit.objects.filter(
            stripe_payment_intent_id=payment_intent_id, owner=owner
        ).first()
        if deposit is None:
            raise NotFoundError(
                "Escrow deposit not found",
                details={"payment_intent_id": payment_intent_id},
            )
        if deposit.status == EscrowStatus.HELD:
            return deposit
        if deposit.status != EscrowStatus.PENDING:
            cls._raise_invalid_state(deposit)

        intent = StripeAdapter.retrieve_payment_intent(payment_intent_id)
        if not intent.funds_secured:
            raise ValidationError(
                "Payment has not been authorised",
                error_code="PAYMENT_NOT_AUTHORISED",
                details={"intent_status": intent.status},
            )

        expiry_days = billing_settings.get().escrow_expiry_days
        try:
            with transaction.atomic():
                deposit = EscrowDeposit.objects.select_for_update().get(pk=deposit.pk)
                if deposit.status == EscrowStatus.HELD:
                    return deposit
                if deposit.status != EscrowStatus.PENDING:
                    cls._raise_invalid_state(deposit)
                deposit.hold(expiry_days=expiry_days)
                deposit.save()
        except IntegrityError:
            existing = (
                EscrowDeposit.objects.for_triple(
                    deposit.owner_id, deposit.property_id, deposit.buyer_id
                )
                .held()
                .first()
            )
            if existing is None:
                raise
            cls._discard_duplicate(deposit)
            raise EscrowAlreadyExistsError(existing.id)

        cls.get_logger().info(
            "Escrow deposit held",
            extra={
                "escrow_id": str(deposit.id),
                "expires_at": deposit.expires_at.isoformat(),
            },
        )
        return deposit

    @classmethod
    def _discard_duplicate(cls, deposit: EscrowDeposit) -> None:
        """Cancel the authorisation of a deposit that lost the HELD race."""
        try:
            StripeAdapter.cancel_payment_intent(
                deposit.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "escrow_duplicate", deposit.pk
                ),
                reason="duplicate",
            )
        except StripeError:
            cls.get_logger().error(
                "Could not cancel duplicate escrow authorisation",
                extra={
                    "escrow_id": str(deposit.id),
                    "payment_intent_id": deposit.stripe_payment_intent_id,
                },
                exc_info=True,
            )
            return
        EscrowDeposit.objects.filter(pk=deposit.pk, status=EscrowStatus.PENDING).delete()

    @classmethod
    def check(cls, owner_user: User, property_id, buyer_id) -> dict[str, Any]:
        """Whether the owner holds a deposit that lets them contact the buyer."""
        owner = cls._owner_profile(owner_user)
        triple = EscrowDeposit.objects.for_triple(owner.pk, property_id, buyer_id)
        deposit = triple.held().first() or triple.order_by("-created_at").first()
        return {
            "has_access": deposit is not None and deposit.status == EscrowStatus.HELD,
            "escrow_id": str(deposit.id) if deposit else None,
            "status": deposit.status if deposit else None,
        }

    # =========================================================================
    # Terminal transitions
    # =========================================================================

    @classmethod
    def _raise_invalid_state(cls, deposit: EscrowDeposit) -> None:
        current = (
            EscrowDeposit.objects.filter(pk=deposit.pk)
            .values_list("status", flat=True)
            .first()
        )
        raise InvalidStateTransitionError(
            f"Escrow deposit is {current}, not held",
            details={"escrow_id": str(deposit.pk), "current_status": current},
        )

    @classmethod
    def _settle_at_processor(cls, deposit: EscrowDeposit, call, settled_status: str) -> None:
        """
        Run the capture or cancel ``call`` for a deposit being settled.

        Stripe answers ``payment_intent_unexpected_state`` when the intent
        is already where we want it (captured by an earlier attempt, or an
        uncaptured authorisation Stripe let lapse). If the intent now has
        ``settled_status`` the local transition stands; otherwise the error
        propagates and the transaction rolls back.
        """
        try:
            call()
        except StripeInvalidRequestError as exc:
            if exc.stripe_code != "payment_intent_unexpected_state":
                raise
            intent = StripeAdapter.retrieve_payment_intent(
                deposit.stripe_payment_intent_id
            )
            if intent.status != settled_status:
                raise
            cls.get_logger().warning(
                "PaymentIntent already settled at processor",
                extra={
                    "escrow_id": str(deposit.pk),
                    "payment_intent_id": deposit.stripe_payment_intent_id,
                    "intent_status": intent.status,
                },
            )

    @classmethod
    def release(cls, deposit_id) -> EscrowDeposit:
        """
        HELD -> RELEASED and capture the held funds.

        Raises:
            NotFoundError: Unknown deposit
            InvalidStateTransitionError: Deposit is not HELD (no processor call)
            StripeError: Capture failed; the deposit is still HELD
        """
        deposit = cls.get_deposit(deposit_id)

        with transaction.atomic():
            updated = EscrowDeposit.objects.transition_from_held(
                deposit.pk, EscrowStatus.RELEASED, released_at=timezone.now()
            )
            if updated == 0:
                cls._raise_invalid_state(deposit)
            cls._settle_at_processor(
                deposit,
                lambda: StripeAdapter.capture_payment_intent(
                    deposit.stripe_payment_intent_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "escrow_release", deposit.pk
                    ),
                ),
                settled_status="succeeded",
            )

        deposit.refresh_from_db()
        cls.get_logger().info(
            "Escrow released",
            extra={"escrow_id": str(deposit.id), "amount_cents": deposit.amount_cents},
        )
        cls._notify_owner(
            deposit,
            NotificationKind.ESCROW_RELEASED,
            title="Finder's fee released",
            body=(
                f"Your {format_amount(deposit.amount_cents)} finder's fee "
                "was released after the inquiry completed."
            ),
        )
        return deposit

    @classmethod
    def refund(cls, deposit_id, reason: str = RefundReason.ADMIN) -> EscrowDeposit:
        """
        HELD -> REFUNDED (or EXPIRED for reason=expired) and cancel the hold.

        Raises:
            NotFoundError: Unknown deposit
            InvalidStateTransitionError: Deposit is not HELD (no processor call)
            StripeError: Cancel failed; the deposit is still HELD
        """
        if reason not in RefundReason.values:
            raise ValidationError(
                f"Unknown refund reason: {reason}", details={"reason": reason}
            )
        deposit = cls.get_deposit(deposit_id)
        expired = reason == RefundReason.EXPIRED
        target = EscrowStatus.EXPIRED if expired else EscrowStatus.REFUNDED

        with transaction.atomic():
            updated = EscrowDeposit.objects.transition_from_held(
                deposit.pk,
                target,
                refunded_at=timezone.now(),
                refund_reason=reason,
            )
            if updated == 0:
                cls._raise_invalid_state(deposit)
            cls._settle_at_processor(
                deposit,
                lambda: StripeAdapter.cancel_payment_intent(
                    deposit.stripe_payment_intent_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "escrow_refund", deposit.pk
                    ),
                    reason="abandoned" if expired else "requested_by_customer",
                ),
                settled_status="canceled",
            )

        deposit.refresh_from_db()
        cls.get_logger().info(
            "Escrow refunded",
            extra={
                "escrow_id": str(deposit.id),
                "status": deposit.status,
                "reason": reason,
            },
        )
        amount = format_amount(deposit.amount_cents)
        if expired:
            cls._notify_owner(
                deposit,
                NotificationKind.ESCROW_EXPIRED,
                title="Finder's fee refunded",
                body=(
                    f"Your {amount} finder's fee expired without a response "
                    "and has been refunded."
                ),
            )
        else:
            cls._notify_owner(
                deposit,
                NotificationKind.ESCROW_REFUNDED,
                title="Finder's fee refunded",
                body=f"Your {amount} finder's fee has been refunded.",
            )
        return deposit

    @classmethod
    def _notify_owner(
        cls, deposit: EscrowDeposit, kind: str, title: str, body: str
    ) -> None:
        recipient = deposit.owner.user
        data = {
            "escrow_id": str(deposit.id),
            "property_id": str(deposit.property_id),
            "inquiry_id": str(deposit.inquiry_id) if deposit.inquiry_id else None,
        }
        transaction.on_commit(
            lambda: notify(
                recipient=recipient,
                notification_type=kind,
                title=title,
                body=body,
                data=data,
                idempotency_key=f"{kind}:{deposit.id}",
            )
        )

    # =========================================================================
    # Inquiries
    # =========================================================================

    @classmethod
    def link_inquiry(cls, inquiry: Inquiry) -> EscrowDeposit | None:
        """
        Attach the newest unlinked HELD deposit for the inquiry's triple.

        Returns the linked deposit, or None when there is nothing to link.
        """
        deposit = (
            EscrowDeposit.objects.for_triple(
                inquiry.owner_id, inquiry.property_id, inquiry.buyer_id
            )
            .held()
            .filter(inquiry__isnull=True)
            .order_by("-created_at")
            .first()
        )
        if deposit is None:
            return None

        updated = EscrowDeposit.objects.filter(
            pk=deposit.pk, inquiry__isnull=True
        ).update(
            inquiry=inquiry,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if updated == 0:
            return None

        deposit.refresh_from_db()
        cls.get_logger().info(
            "Escrow linked to inquiry",
            extra={"escrow_id": str(deposit.id), "inquiry_id": str(inquiry.id)},
        )
        return deposit
