"""
State enums for settlement models.
"""

from settlement.state_machines.states import PaymentRecordStatus, WebhookEventStatus

__all__ = [
    "PaymentRecordStatus",
    "WebhookEventStatus",
]
