"""
DRF serializers for settlement app.

This module provides serializers for:
- PaymentRecord listings on the reconciliation API

Related files:
    - models/payment_record.py: PaymentRecord
    - views.py: Reconciliation API views
"""

from __future__ import annotations

from rest_framework import serializers

from settlement.models import PaymentRecord


class PaymentRecordSerializer(serializers.ModelSerializer):
    """
    Read-only PaymentRecord representation.

    Adds the contract's creator so operators can see whose earnings a
    record affects without a second lookup.
    """

    creator_id = serializers.CharField(source="contract.creator_id", read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            "id",
            "contract",
            "creator_id",
            "amount",
            "payout_amount",
            "commission_amount",
            "currency",
            "status",
            "external_event_id",
            "external_payment_ref",
            "external_charge_ref",
            "earnings_credited_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields
