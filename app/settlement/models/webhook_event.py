"""
WebhookEvent model: the event-applied ledger.

Every processor delivery that passes verification gets one row here,
keyed by the processor event id. The IdempotencyGuard owns this table:
the row is inserted in PROCESSING before any settlement write happens
and only advanced to PROCESSED after every settlement step succeeded.

Usage:
    from settlement.models import WebhookEvent
    from settlement.state_machines import WebhookEventStatus

    stale = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        claimed_at__lt=cutoff,
    )
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from settlement.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks processor webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, signature verified
        2. Guard inserts the row in PROCESSING with claimed_at=now
        3. Duplicate insert -> PROCESSED means already applied (200)
        4. Duplicate insert -> PROCESSING with a live claim means another
           worker is on it (503, processor retries later)
        5. FAILED or an expired claim is reclaimed by exactly one worker
        6. Orchestrator runs, then PROCESSED or FAILED

    Fields:
        external_event_id: Processor event id (evt_xxx), unique
        event_type: Processor event type
        payload: Full verified event body
        status: Processing status
        claimed_at: When the current processing attempt started
        processed_at: When the event was fully applied
        error_message: Last failure, if any
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    external_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Processor event type (e.g., 'payment_intent.succeeded')",
    )

    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Full verified webhook payload",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PROCESSING,
        db_index=True,
        help_text="Current processing status",
    )

    claimed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the current processing attempt claimed the event",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "claimed_at"], name="webhook_status_claimed_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.external_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    def claim_is_live(self, now=None, lease_seconds: int | None = None) -> bool:
        """
        Check whether a PROCESSING claim is still within its lease.

        A claim older than the lease (SETTLEMENT_PROCESSING_LEASE_SECONDS
        unless given) belongs to a worker that crashed or timed out and
        may be taken over.
        """
        if self.status != WebhookEventStatus.PROCESSING or self.claimed_at is None:
            return False
        if lease_seconds is None:
            lease_seconds = settings.SETTLEMENT_PROCESSING_LEASE_SECONDS
        now = now or timezone.now()
        return self.claimed_at > now - timedelta(seconds=lease_seconds)
