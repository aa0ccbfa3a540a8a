"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedModelMixin: Optimistic version counter incremented on save

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin

    class Payment(UUIDPrimaryKeyMixin, VersionedModelMixin, BaseModel):
        amount = models.DecimalField(max_digits=12, decimal_places=2)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Payment and payout identifiers leave the system (gateway metadata,
    notifications, documents), so they must not reveal record counts.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedModelMixin(models.Model):
    """
    Optimistic version counter.

    Every update increments ``version`` atomically in the database with an
    F() expression, so two writers that loaded the same row can be told
    apart afterwards.

    Fields:
        version: Incremented on every save after the initial insert

    Note:
        Only the ``version`` field is reloaded after save. Models with a
        protected FSM field must never call refresh_from_db() on that field.
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = (
            not self._state.adding
            and self.pk is not None
            and not kwargs.get("force_insert", False)
        )
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
