"""
State enums for billing models.

These are Django TextChoices: stored as lowercase strings and used as
django-fsm states where a model has a state machine.

EscrowDeposit:
    pending → held → released
                   → refunded
                   → expired
    released, refunded and expired are terminal.

Subscription (mirrored from the processor, never driven locally):
    incomplete / active / past_due / canceled

WebhookEvent (durable retry queue):
    pending → processing → processed
                         → failed → processing (retry)
                                  → dead_lettered
"""

from django.db import models


class EscrowStatus(models.TextChoices):
    """
    Lifecycle of a finder's-fee deposit.

    PENDING: payment intent issued, funds not yet authorised
    HELD: funds authorised and held by the platform
    RELEASED: inquiry completed, funds captured by the platform
    REFUNDED: inquiry declined or admin refund, authorisation cancelled
    EXPIRED: expiry deadline passed unresolved, authorisation cancelled
    """

    PENDING = "pending", "Pending"
    HELD = "held", "Held"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    EXPIRED = "expired", "Expired"


class RefundReason(models.TextChoices):
    """Why a held deposit was given back to the owner."""

    INQUIRY_DECLINED = "inquiry_declined", "Inquiry declined"
    ADMIN = "admin", "Admin override"
    EXPIRED = "expired", "Expired"


class SubscriptionTier(models.TextChoices):
    FREE = "free", "Free"
    PRO = "pro", "Pro"


class SubscriptionStatus(models.TextChoices):
    """Subscription status as reported by the payment processor."""

    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"
    INCOMPLETE = "incomplete", "Incomplete"


class BillingInterval(models.TextChoices):
    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status of a stored processor event.

    DEAD_LETTERED events exhausted their retries and wait for an operator.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
    DEAD_LETTERED = "dead_lettered", "Dead Lettered"
