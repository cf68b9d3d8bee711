"""
Ledger writer: insert-if-absent PaymentRecords keyed by event id.
"""

from __future__ import annotations

import logging
import uuid

from django.utils import timezone

from settlement.models import PaymentRecord
from settlement.state_machines import PaymentRecordStatus


logger = logging.getLogger(__name__)


class LedgerWriter:
    """
    Write PaymentRecords so that one event produces at most one row.

    record_payment relies on the unique external_event_id. get_or_create
    already re-reads the row when a concurrent insert wins the race, so
    both callers get the same record back.
    """

    def record_payment(
        self,
        event_id: str,
        contract_id: uuid.UUID,
        amount: int,
        payout_amount: int,
        commission_amount: int,
        status: str,
        *,
        payment_ref: str | None = None,
        charge_ref: str | None = None,
        currency: str = "usd",
    ) -> PaymentRecord:
        """
        Insert the record for an event unless it already exists.

        Args:
            event_id: Processor event id, the idempotency key
            contract_id: Contract the payment belongs to
            amount: Amount charged (minor units)
            payout_amount: Creator share (minor units)
            commission_amount: Platform commission (minor units)
            status: PaymentRecordStatus value
            payment_ref: Processor payment id
            charge_ref: Processor charge id, used to match refunds
            currency: ISO 4217 code

        Returns:
            The new record, or the existing one unchanged
        """
        record, created = PaymentRecord.objects.get_or_create(
            external_event_id=event_id,
            defaults={
                "contract_id": contract_id,
                "amount": amount,
                "payout_amount": payout_amount,
                "commission_amount": commission_amount,
                "status": status,
                "currency": currency,
                "external_payment_ref": payment_ref,
                "external_charge_ref": charge_ref,
            },
        )

        if created:
            logger.info(
                f"Recorded {status} payment for contract {contract_id}",
                extra={
                    "event_id": event_id,
                    "contract_id": str(contract_id),
                    "amount": amount,
                    "payment_record_id": str(record.id),
                },
            )
        else:
            logger.info(
                f"Payment record for event {event_id} already exists",
                extra={"event_id": event_id, "payment_record_id": str(record.id)},
            )
        return record

    def find_by_charge_ref(self, charge_ref: str) -> PaymentRecord | None:
        if not charge_ref:
            return None
        return PaymentRecord.objects.filter(external_charge_ref=charge_ref).first()

    def find_for_refund(
        self,
        charge_ref: str,
        payment_ref: str | None = None,
    ) -> PaymentRecord | None:
        """
        Find the record a refund applies to.

        Matches on the charge id first. Payment events do not always carry
        the charge id, so fall back to the payment id of a completed or
        refunded record.
        """
        record = self.find_by_charge_ref(charge_ref)
        if record is not None or not payment_ref:
            return record

        return (
            PaymentRecord.objects.filter(
                external_payment_ref=payment_ref,
                status__in=[PaymentRecordStatus.COMPLETED, PaymentRecordStatus.REFUNDED],
            )
            .order_by("created_at")
            .first()
        )

    def mark_refunded(self, record: PaymentRecord, charge_ref: str | None = None) -> bool:
        """
        Move a record completed -> refunded.

        Args:
            record: The record being refunded
            charge_ref: Charge id to store if the record lacks one

        Returns:
            True if this call changed the row, False if it was not completed
        """
        now = timezone.now()
        fields = {
            "status": PaymentRecordStatus.REFUNDED,
            "refunded_at": now,
            "updated_at": now,
        }
        if charge_ref and not record.external_charge_ref:
            fields["external_charge_ref"] = charge_ref

        updated = PaymentRecord.objects.filter(
            pk=record.pk,
            status=PaymentRecordStatus.COMPLETED,
        ).update(**fields)

        if updated:
            logger.info(
                f"Payment record {record.id} refunded",
                extra={"payment_record_id": str(record.id), "contract_id": str(record.contract_id)},
            )
        return bool(updated)
