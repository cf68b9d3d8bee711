"""
Model mixins shared across apps.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Contract(UUIDPrimaryKeyMixin, BaseModel):
        total_amount = models.PositiveBigIntegerField()
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Marketplace rows are referenced from processor metadata
    (metadata.opportunityId, metadata.creatorId), so identifiers must be
    stable and non-guessable.

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
