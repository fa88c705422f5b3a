"""
BillingSetting model: one flat key/value row per billing configuration key.

Rows are read and written only through billing.settings_store, which owns
the cache in front of them.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel

SETTING_KEY_PREFIX = "billing."


class BillingSetting(BaseModel):
    """
    A single configuration value.

    Fields:
        key: Namespaced key, e.g. ``billing.escrow_fee_standard``
        value: JSON value (int, bool, or a feature table dict)
        updated_by: Admin who last wrote the value
    """

    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField()
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["key"]
        verbose_name = "Billing Setting"
        verbose_name_plural = "Billing Settings"

    def __str__(self) -> str:
        return f"{self.key}={self.value!r}"
