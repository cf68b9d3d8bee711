"""
Earnings aggregator: optimistic, exactly-once credits to CreatorEarnings.

Concurrent credits for one creator must all land. Each attempt reads
(total_earnings, version) and writes (total + delta, version + 1) with an
UPDATE conditioned on the version it read. A lost race rolls the attempt
back and retries with exponential backoff.

When a payment_record_id is given, the attempt also stamps the record's
earnings_credited_at in the same transaction. A record that is already
stamped is never credited again, so redelivered events and the
reconciliation task cannot double-credit.

Usage:
    from settlement.services import EarningsAggregator

    new_total = EarningsAggregator().credit(
        creator_id=contract.creator_id,
        delta=contract.creator_payout_amount,
        payment_record_id=record.id,
    )
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.exceptions import ValidationError

from settlement.exceptions import StaleRecordError
from settlement.models import CreatorEarnings, PaymentRecord


logger = logging.getLogger(__name__)


class EarningsAggregator:
    """
    Credit creator earnings under optimistic concurrency control.

    Args:
        max_retries: Attempts before giving up
            (defaults to SETTLEMENT_EARNINGS_MAX_RETRIES)
        base_delay: Backoff base in seconds, doubled per attempt
            (defaults to SETTLEMENT_EARNINGS_RETRY_BASE_DELAY)
        sleep: Injected for tests
    """

    def __init__(
        self,
        max_retries: int | None = None,
        base_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_retries = (
            max_retries if max_retries is not None else settings.SETTLEMENT_EARNINGS_MAX_RETRIES
        )
        self.base_delay = (
            base_delay
            if base_delay is not None
            else settings.SETTLEMENT_EARNINGS_RETRY_BASE_DELAY
        )
        self.sleep = sleep

    def credit(
        self,
        creator_id,
        delta: int,
        payment_record_id: uuid.UUID | None = None,
    ) -> int:
        """
        Add delta to the creator's total earnings.

        Args:
            creator_id: User id of the creator
            delta: Amount to add (minor units, non-negative)
            payment_record_id: Record this credit settles; makes the call
                a no-op if that record was already credited

        Returns:
            The creator's total after the call

        Raises:
            ValidationError: delta is negative
            StaleRecordError: Every attempt lost to a concurrent writer
        """
        if delta < 0:
            raise ValidationError(
                "Earnings credit must not be negative",
                details={"creator_id": str(creator_id), "delta": delta},
            )

        CreatorEarnings.objects.get_or_create(creator_id=creator_id)

        for attempt in range(1, self.max_retries + 1):
            current = self._read(creator_id)

            with transaction.atomic():
                if payment_record_id is not None:
                    claimed = PaymentRecord.objects.filter(
                        pk=payment_record_id,
                        earnings_credited_at__isnull=True,
                    ).update(earnings_credited_at=timezone.now())

                    if not claimed:
                        total = self._read(creator_id)["total_earnings"]
                        logger.info(
                            f"Payment record {payment_record_id} already credited",
                            extra={
                                "creator_id": str(creator_id),
                                "payment_record_id": str(payment_record_id),
                                "total_earnings": total,
                            },
                        )
                        return total

                new_total = current["total_earnings"] + delta

                updated = CreatorEarnings.objects.filter(
                    creator_id=creator_id,
                    version=current["version"],
                ).update(
                    total_earnings=new_total,
                    version=current["version"] + 1,
                    updated_at=timezone.now(),
                )

                if updated:
                    logger.info(
                        f"Credited {delta} to creator {creator_id}",
                        extra={
                            "creator_id": str(creator_id),
                            "delta": delta,
                            "total_earnings": new_total,
                            "version": current["version"] + 1,
                            "attempt": attempt,
                        },
                    )
                    return new_total

                # Version moved under us: undo the marker and retry
                transaction.set_rollback(True)

            logger.info(
                f"Earnings version conflict for creator {creator_id}, attempt {attempt}",
                extra={"creator_id": str(creator_id), "attempt": attempt},
            )
            if attempt < self.max_retries:
                self.sleep(self.base_delay * 2 ** (attempt - 1))

        logger.warning(
            f"Earnings credit for creator {creator_id} exhausted retries",
            extra={
                "creator_id": str(creator_id),
                "delta": delta,
                "attempts": self.max_retries,
            },
        )
        raise StaleRecordError(
            f"CreatorEarnings for {creator_id} kept changing",
            details={
                "creator_id": str(creator_id),
                "attempts": self.max_retries,
            },
        )

    def _read(self, creator_id) -> dict:
        return CreatorEarnings.objects.values("total_earnings", "version").get(
            creator_id=creator_id
        )
