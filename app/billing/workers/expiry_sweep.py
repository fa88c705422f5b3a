"""
Expiry sweep: refund HELD deposits whose deadline passed unresolved.

A deposit is swept when it is past ``expires_at`` and either has no
inquiry or its inquiry is still PENDING. Deposits whose inquiry moved on
(accepted, declined, completed) are left for the inquiry flow to settle.

Runs daily at 03:00 UTC via celery-beat (billing migration 0002), and
synchronously from the admin API.

Usage:
    from billing.workers import process_expired_escrows

    process_expired_escrows.delay()
    result = process_expired_escrows()  # {"processed": 3, "refunded": 2, "errors": []}
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db.models import Q
from django.utils import timezone

from billing.exceptions import InvalidStateTransitionError
from billing.models import EscrowDeposit
from billing.services import EscrowService
from billing.state_machines import RefundReason
from marketplace.states import InquiryStatus

logger = logging.getLogger(__name__)


BATCH_SIZE = 100


def _should_expire(deposit: EscrowDeposit) -> bool:
    inquiry = deposit.inquiry
    return inquiry is None or inquiry.status == InquiryStatus.PENDING


def sweep_expired_escrows(now=None) -> dict:
    """
    Refund every eligible expired deposit, in batches ordered by expires_at.

    A deposit that another caller moved out of HELD first counts as
    processed but not refunded. Any other per-deposit failure is collected
    in ``errors`` and the sweep continues.
    """
    now = now or timezone.now()
    processed = 0
    refunded = 0
    errors: list[dict] = []

    cursor = None
    while True:
        batch_qs = EscrowDeposit.objects.expired_held(now).select_related("inquiry")
        if cursor is not None:
            last_expires_at, last_id = cursor
            batch_qs = batch_qs.filter(
                Q(expires_at__gt=last_expires_at)
                | Q(expires_at=last_expires_at, id__gt=last_id)
            )
        batch = list(batch_qs.order_by("expires_at", "id")[:BATCH_SIZE])
        if not batch:
            break

        for deposit in batch:
            processed += 1
            if not _should_expire(deposit):
                continue
            try:
                EscrowService.refund(deposit.id, reason=RefundReason.EXPIRED)
            except InvalidStateTransitionError:
                logger.info(
                    "Expired escrow already settled by another caller",
                    extra={"escrow_id": str(deposit.id)},
                )
                continue
            except Exception as e:
                logger.error(
                    "Failed to expire escrow",
                    extra={"escrow_id": str(deposit.id), "error": str(e)},
                    exc_info=True,
                )
                errors.append({"escrow_id": str(deposit.id), "error": str(e)})
                continue
            refunded += 1

        last = batch[-1]
        cursor = (last.expires_at, last.id)
        if len(batch) < BATCH_SIZE:
            break

    logger.info(
        "Escrow expiry sweep complete",
        extra={"processed": processed, "refunded": refunded, "error_count": len(errors)},
    )
    return {"processed": processed, "refunded": refunded, "errors": errors}


@shared_task(bind=True, acks_late=True)
def process_expired_escrows(self) -> dict:
    """Celery entry point for the expiry sweep."""
    logger.info("Starting escrow expiry sweep")
    return sweep_expired_escrows()
