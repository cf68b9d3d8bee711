"""
CreatorEarnings model: running total of a creator's payouts.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class CreatorEarnings(UUIDPrimaryKeyMixin, BaseModel):
    """
    Per-creator earnings aggregate.

    Writes go through EarningsAggregator.credit, which conditions the
    UPDATE on the version it read. Never save() a total computed from a
    stale read; it would drop a concurrent credit.

    Fields:
        creator: Creator the total belongs to
        total_earnings: Sum of credited payouts (minor units)
        version: Optimistic locking version
    """

    creator = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="earnings",
        help_text="Creator whose earnings this row tracks",
    )

    total_earnings = models.PositiveBigIntegerField(
        default=0,
        help_text="Total credited payouts in minor units",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic locking version, incremented on every credit",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Creator Earnings"
        verbose_name_plural = "Creator Earnings"

    def __str__(self) -> str:
        return f"CreatorEarnings({self.creator_id}, {self.total_earnings})"
