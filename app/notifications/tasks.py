"""
Celery tasks for notification delivery.

Tasks:
    send_notification_email: Email copy of an in-app notification

Usage:
    from notifications.tasks import send_notification_email

    # Queued by NotificationService.create_notification() on commit
    send_notification_email.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_notification_email(self, notification_id: str) -> bool:
    """
    Send the email copy of a notification.

    Idempotent: a notification that was already emailed, or whose
    recipient has no email address, is skipped.

    Returns:
        True if sent, False if skipped
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(pk=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Notification {notification_id} not found for email")
        return False
    if notification.emailed_at is not None:
        return False

    recipient = notification.recipient
    if not recipient.email:
        logger.info(
            f"Email skipped for notification {notification_id}: recipient has no email"
        )
        return False

    send_mail(
        subject=notification.title,
        message=notification.body or notification.title,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    Notification.objects.filter(pk=notification.pk, emailed_at__isnull=True).update(
        emailed_at=timezone.now()
    )
    logger.info(
        f"Email sent for notification {notification_id}",
        extra={"notification_type": notification.notification_type},
    )
    return True
