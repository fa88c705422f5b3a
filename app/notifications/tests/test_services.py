"""
Tests for notification creation and email delivery.
"""

from unittest.mock import patch

import pytest
from django.core import mail

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationKind
from notifications.services import NotificationService, notify
from notifications.tasks import send_notification_email

pytestmark = pytest.mark.django_db


@pytest.fixture
def recipient():
    return UserFactory(email="owner@example.com")


class TestCreateNotification:
    def test_creates_and_emails_on_commit(self, recipient, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = NotificationService.create_notification(
                recipient=recipient,
                notification_type=NotificationKind.ESCROW_RELEASED,
                title="Finder's fee released",
                body="Your $299.00 finder's fee was released.",
                data={"escrow_id": "abc"},
            )

        assert result.success
        notification = result.data
        assert notification.data == {"escrow_id": "abc"}
        assert not notification.is_read
        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == "Finder's fee released"
        assert mail.outbox[0].to == ["owner@example.com"]
        notification.refresh_from_db()
        assert notification.emailed_at is not None

    def test_no_email_before_commit(self, recipient, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            NotificationService.create_notification(
                recipient=recipient,
                notification_type=NotificationKind.INQUIRY_RECEIVED,
                title="New inquiry",
            )

        assert len(callbacks) == 1
        assert mail.outbox == []

    def test_unknown_type(self, recipient):
        result = NotificationService.create_notification(
            recipient=recipient, notification_type="party_invite", title="Hi"
        )

        assert result.error_code == "UNKNOWN_TYPE"
        assert not Notification.objects.exists()

    def test_duplicate_key(self, recipient):
        kwargs = {
            "recipient": recipient,
            "notification_type": NotificationKind.ESCROW_EXPIRED,
            "title": "Finder's fee refunded",
            "idempotency_key": "escrow_expired:abc",
        }
        assert NotificationService.create_notification(**kwargs).success

        result = NotificationService.create_notification(**kwargs)

        assert result.error_code == "DUPLICATE"
        assert Notification.objects.count() == 1

    def test_send_email_false(self, recipient, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            NotificationService.create_notification(
                recipient=recipient,
                notification_type=NotificationKind.INQUIRY_RESPONSE,
                title="Inquiry accepted",
                send_email=False,
            )
        assert callbacks == []


class TestNotify:
    def test_returns_notification(self, recipient):
        notification = notify(
            recipient=recipient,
            notification_type=NotificationKind.ESCROW_REFUNDED,
            title="Finder's fee refunded",
        )
        assert isinstance(notification, Notification)

    def test_duplicate_returns_none(self, recipient):
        kwargs = {
            "recipient": recipient,
            "notification_type": NotificationKind.ESCROW_REFUNDED,
            "title": "Finder's fee refunded",
            "idempotency_key": "escrow_refunded:1",
        }
        notify(**kwargs)
        assert notify(**kwargs) is None

    def test_swallows_errors(self, recipient, caplog):
        with patch.object(
            NotificationService,
            "create_notification",
            side_effect=RuntimeError("database gone"),
        ):
            assert (
                notify(
                    recipient=recipient,
                    notification_type=NotificationKind.ESCROW_REFUNDED,
                    title="Finder's fee refunded",
                )
                is None
            )
        assert "Failed to create notification" in caplog.text


class TestSendNotificationEmail:
    def test_sends_once(self, recipient):
        notification = Notification.objects.create(
            recipient=recipient,
            notification_type=NotificationKind.ESCROW_RELEASED,
            title="Finder's fee released",
            body="Released.",
        )

        assert send_notification_email(str(notification.id)) is True
        assert send_notification_email(str(notification.id)) is False
        assert len(mail.outbox) == 1
        assert mail.outbox[0].body == "Released."

    def test_missing_notification(self):
        assert send_notification_email("999999") is False
        assert mail.outbox == []
