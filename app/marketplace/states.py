"""
State enums for marketplace models.

Inquiry:
    pending → accepted → completed
    pending → declined
    pending → completed
"""

from django.db import models


class InquiryStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    COMPLETED = "completed", "Completed"


class InitiatedBy(models.TextChoices):
    """Which side opened the inquiry; the other side accepts or declines."""

    OWNER = "owner", "Owner"
    BUYER = "buyer", "Buyer"

    @property
    def counterpart(self) -> "InitiatedBy":
        return InitiatedBy.BUYER if self == InitiatedBy.OWNER else InitiatedBy.OWNER
