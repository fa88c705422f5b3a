"""
Abstract base models shared by every domain app.

Base Classes:
    BaseModel: created_at / updated_at timestamps
    VersionedModel: BaseModel plus an optimistic-locking ``version`` column

Usage:
    from core.models import BaseModel, VersionedModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class EscrowDeposit(UUIDPrimaryKeyMixin, VersionedModel):
        amount_cents = models.PositiveIntegerField()

Note:
    Always list mixins before the base model in inheritance.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F


class BaseModel(models.Model):
    """
    Abstract base model providing creation and modification timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save()
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"


class VersionedModel(BaseModel):
    """
    BaseModel with a version counter bumped on every update.

    save() increments the column with an F() expression so two writers
    never both persist the same version. Bulk ``QuerySet.update()`` calls
    must bump it themselves (``version=F("version") + 1``).
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
