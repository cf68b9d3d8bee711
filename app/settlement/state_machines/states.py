"""
State enums for settlement models.

WebhookEvent Status:
    processing → processed
    processing → failed → processing (retry, reclaimed by the guard)
    processing (claim expired) → processing (reclaimed after a crash)

PaymentRecord Status:
    completed → refunded
    failed (terminal)
"""

from django.db import models


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    A row is inserted directly in PROCESSING before any downstream write,
    and only advanced to PROCESSED once every settlement step succeeded.
    """

    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class PaymentRecordStatus(models.TextChoices):
    """
    Status of a PaymentRecord.

    Terminal states: FAILED, REFUNDED
    """

    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


__all__ = [
    "PaymentRecordStatus",
    "WebhookEventStatus",
]
