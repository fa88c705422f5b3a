"""
Model mixins combined with core.models base classes.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a random UUID as primary key instead of an auto-increment integer.

    Deposit and event ids appear in URLs and processor metadata, so they
    must not reveal record counts or be guessable.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
