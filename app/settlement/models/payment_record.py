"""
PaymentRecord model: one row per processor payment event.

The unique external_event_id makes the ledger write insert-if-absent:
a redelivered event finds its row and never creates a second one.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from settlement.state_machines import PaymentRecordStatus


class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Ledger entry for a processed payment, failure or refund.

    Fields:
        contract: Contract the payment belongs to
        amount: Amount charged (minor units)
        payout_amount: Creator share (minor units)
        commission_amount: Platform commission (minor units)
        currency: ISO 4217 code
        status: completed, failed or refunded
        external_event_id: Event id that created the row, unique
        external_payment_ref: Processor payment id (pi_xxx)
        external_charge_ref: Processor charge id (ch_xxx), used by refunds
        payment_method: Processor name, "stripe"
        earnings_credited_at: Set in the same transaction as the earnings
            credit for this record; a non-null value means "already credited"
        refunded_at: When the refund was applied

    Note:
        payout_amount + commission_amount is not required to equal amount.
        Failed records carry amount only, with payout and commission 0.
    """

    contract = models.ForeignKey(
        "marketplace.Contract",
        on_delete=models.PROTECT,
        related_name="payment_records",
        help_text="Contract this payment settles",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Amount charged in minor units",
    )

    payout_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Creator share in minor units",
    )

    commission_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Platform commission in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    status = models.CharField(
        max_length=20,
        choices=PaymentRecordStatus.choices,
        db_index=True,
        help_text="completed, failed or refunded",
    )

    # ==========================================================================
    # Processor References
    # ==========================================================================

    external_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Webhook event id that created this record",
    )

    external_payment_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Processor payment id (pi_xxx)",
    )

    external_charge_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Processor charge id (ch_xxx)",
    )

    payment_method = models.CharField(
        max_length=50,
        default="stripe",
        help_text="Processor that handled the payment",
    )

    # ==========================================================================
    # Settlement Markers
    # ==========================================================================

    earnings_credited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When payout_amount was credited to the creator's earnings",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the refund was recorded",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(
                fields=["status", "earnings_credited_at"],
                name="payment_status_credited_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentRecord({self.external_event_id}, {self.status}, {self.amount})"

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentRecordStatus.COMPLETED

    @property
    def earnings_credited(self) -> bool:
        return self.earnings_credited_at is not None
