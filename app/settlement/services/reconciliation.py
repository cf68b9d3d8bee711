"""
Reconciliation service: finds and heals settlement gaps.

The webhook path credits earnings in the same saga as the payment record.
If a delivery stops after the record was written and the processor gives
up retrying, the payment stays uncredited. This service finds those
records and credits them through the same exactly-once marker, and lists
refunded payments whose earnings were never clawed back.

Usage:
    from settlement.services import ReconciliationService

    stats = ReconciliationService().credit_missing_earnings()
    logger.info("Reconciliation", extra=stats)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone

from settlement.exceptions import StaleRecordError
from settlement.models import PaymentRecord
from settlement.services.earnings_aggregator import EarningsAggregator
from settlement.state_machines import PaymentRecordStatus


logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Detect and heal earnings that diverged from the payment ledger.

    Args:
        earnings: EarningsAggregator (default instance if omitted)
    """

    def __init__(self, earnings: EarningsAggregator | None = None):
        self.earnings = earnings or EarningsAggregator()

    def find_uncredited_payments(self, older_than: timedelta | None = None) -> QuerySet:
        """
        Completed payments whose payout never reached CreatorEarnings.

        Args:
            older_than: Skip records younger than this, so payments still
                being settled are left alone (defaults to the processing
                lease)
        """
        if older_than is None:
            older_than = timedelta(seconds=settings.SETTLEMENT_PROCESSING_LEASE_SECONDS)

        return (
            PaymentRecord.objects.filter(
                status=PaymentRecordStatus.COMPLETED,
                earnings_credited_at__isnull=True,
                created_at__lte=timezone.now() - older_than,
            )
            .select_related("contract")
            .order_by("created_at")
        )

    def find_refunded_with_credited_earnings(self) -> QuerySet:
        """Refunded payments whose payout is still counted in earnings."""
        return PaymentRecord.objects.filter(
            status=PaymentRecordStatus.REFUNDED,
            earnings_credited_at__isnull=False,
        ).order_by("refunded_at")

    def credit_missing_earnings(self, older_than: timedelta | None = None) -> dict:
        """
        Credit every uncredited completed payment.

        Returns:
            Stats dict: checked, credited, failed, clawback_pending
        """
        stats = {"checked": 0, "credited": 0, "failed": 0, "clawback_pending": 0}

        for record in self.find_uncredited_payments(older_than):
            stats["checked"] += 1
            try:
                self.earnings.credit(
                    record.contract.creator_id,
                    record.payout_amount,
                    payment_record_id=record.id,
                )
                stats["credited"] += 1
                logger.info(
                    f"Reconciled earnings for payment record {record.id}",
                    extra={
                        "payment_record_id": str(record.id),
                        "creator_id": str(record.contract.creator_id),
                        "payout_amount": record.payout_amount,
                    },
                )
            except StaleRecordError:
                stats["failed"] += 1
                logger.warning(
                    f"Could not reconcile payment record {record.id}",
                    extra={"payment_record_id": str(record.id)},
                    exc_info=True,
                )

        for record in self.find_refunded_with_credited_earnings():
            stats["clawback_pending"] += 1
            logger.warning(
                f"Refunded payment {record.id} still counted in earnings",
                extra={
                    "anomaly": "earnings_clawback_required",
                    "payment_record_id": str(record.id),
                    "payout_amount": record.payout_amount,
                },
            )

        return stats
