"""
Settlement domain models.

- WebhookEvent: Event-applied ledger owned by the idempotency guard
- PaymentRecord: One ledger row per payment event
- CreatorEarnings: Running payout total per creator
"""

from settlement.models.creator_earnings import CreatorEarnings
from settlement.models.payment_record import PaymentRecord
from settlement.models.webhook_event import WebhookEvent

__all__ = [
    "CreatorEarnings",
    "PaymentRecord",
    "WebhookEvent",
]
