"""
DRF views for settlement app.

Endpoints:
    GET /api/v1/settlement/reconciliation/uncredited-payments/
        Completed payments whose payout has not reached CreatorEarnings

Security:
    - Staff only. The webhook endpoint lives in settlement.webhooks.views.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from rest_framework import generics
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAdminUser

from settlement.serializers import PaymentRecordSerializer
from settlement.services import ReconciliationService

logger = logging.getLogger(__name__)


class UncreditedPaymentListView(generics.ListAPIView):
    """
    List completed payments missing an earnings credit.

    GET /api/v1/settlement/reconciliation/uncredited-payments/

    Query params:
        older_than_seconds: Only records older than this (default: the
            processing lease)
    """

    permission_classes = [IsAdminUser]
    serializer_class = PaymentRecordSerializer

    def get_queryset(self):
        older_than = None
        raw = self.request.query_params.get("older_than_seconds")
        if raw is not None:
            try:
                seconds = int(raw)
            except ValueError:
                raise ValidationError({"older_than_seconds": ["Must be an integer."]})
            if seconds < 0:
                raise ValidationError({"older_than_seconds": ["Must not be negative."]})
            older_than = timedelta(seconds=seconds)

        return ReconciliationService().find_uncredited_payments(older_than)
