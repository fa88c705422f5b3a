"""
Notification service layer.

Services:
    NotificationService: Notification creation

Functions:
    notify: Fire-and-forget wrapper used by other apps

Billing and marketplace code must never fail because a notification
could not be written, so they call notify(), which logs and swallows
failures. Code that needs the outcome calls
NotificationService.create_notification() and inspects the ServiceResult.

Usage:
    from notifications.models import NotificationKind
    from notifications.services import notify

    notify(
        recipient=owner_user,
        notification_type=NotificationKind.ESCROW_RELEASED,
        title="Finder's fee released",
        body="Your $499.00 deposit was released.",
        data={"escrow_id": str(deposit.id)},
        idempotency_key=f"escrow_released:{deposit.id}",
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from notifications.models import Notification, NotificationKind

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification and queue its email
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        notification_type: str,
        title: str,
        body: str = "",
        data: dict | None = None,
        idempotency_key: str | None = None,
        send_email: bool = True,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        Error codes:
            UNKNOWN_TYPE: notification_type is not a NotificationKind
            DUPLICATE: A notification with this idempotency_key exists
        """
        from notifications import tasks

        if notification_type not in NotificationKind.values:
            return ServiceResult.failure(
                f"Unknown notification type: {notification_type}",
                error_code="UNKNOWN_TYPE",
            )

        if (
            idempotency_key
            and Notification.objects.filter(idempotency_key=idempotency_key).exists()
        ):
            cls.get_logger().info(
                "Duplicate notification prevented",
                extra={"idempotency_key": idempotency_key},
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    data=data or {},
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race on the idempotency key.
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        if send_email and recipient.email:
            transaction.on_commit(
                lambda: tasks.send_notification_email.delay(str(notification.id))
            )

        cls.get_logger().info(
            "Notification created",
            extra={
                "notification_id": str(notification.id),
                "recipient_id": recipient.pk,
                "notification_type": notification_type,
            },
        )
        return ServiceResult.success(notification)


def notify(
    recipient: User,
    notification_type: str,
    title: str,
    body: str = "",
    data: dict | None = None,
    idempotency_key: str | None = None,
) -> Notification | None:
    """
    Create a notification without ever raising.

    Returns the notification, or None when it was a duplicate or failed.
    """
    try:
        result = NotificationService.create_notification(
            recipient=recipient,
            notification_type=notification_type,
            title=title,
            body=body,
            data=data,
            idempotency_key=idempotency_key,
        )
    except Exception:
        logger.exception(
            "Failed to create notification",
            extra={
                "recipient_id": getattr(recipient, "pk", None),
                "notification_type": notification_type,
            },
        )
        return None

    if not result.success:
        if result.error_code != "DUPLICATE":
            logger.warning(
                f"Notification not created: {result.error}",
                extra={"error_code": result.error_code},
            )
        return None
    return result.data
