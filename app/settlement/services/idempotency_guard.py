"""
Idempotency guard backed by the WebhookEvent table.

Decides whether an event id is new, already applied, or currently being
worked on, and records the outcome once processing finishes. The claim
row is written before any settlement write, so a crash mid-way leaves a
PROCESSING row that a redelivery can take over after its lease expires.

Usage:
    from settlement.services import IdempotencyGuard
    from settlement.types import BeginResult

    guard = IdempotencyGuard()
    begin = guard.try_begin_processing("evt_1", "payment.succeeded", payload)
    if begin == BeginResult.FRESH:
        ...
        guard.mark_applied("evt_1")
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from settlement.models import WebhookEvent
from settlement.state_machines import WebhookEventStatus
from settlement.types import BeginResult


logger = logging.getLogger(__name__)

# error_message is a TextField, but keep stored tracebacks bounded
MAX_ERROR_LENGTH = 2000


class IdempotencyGuard:
    """
    Claim event ids for processing, exactly one worker at a time.

    States seen by try_begin_processing:
        no row                  -> insert PROCESSING, FRESH
        PROCESSED               -> ALREADY_APPLIED
        PROCESSING, live claim  -> IN_PROGRESS
        PROCESSING, stale claim -> reclaim, FRESH for the single winner
        FAILED                  -> reclaim, FRESH for the single winner

    Args:
        lease_seconds: How long a PROCESSING claim is honoured
            (defaults to SETTLEMENT_PROCESSING_LEASE_SECONDS)
    """

    def __init__(self, lease_seconds: int | None = None):
        self.lease_seconds = (
            lease_seconds
            if lease_seconds is not None
            else settings.SETTLEMENT_PROCESSING_LEASE_SECONDS
        )

    def try_begin_processing(
        self,
        event_id: str,
        event_type: str = "",
        payload: dict | None = None,
    ) -> BeginResult:
        """
        Atomically claim an event id.

        Args:
            event_id: Processor event id
            event_type: Processor event type, stored for audit
            payload: Verified body, stored so the event can be replayed

        Returns:
            BeginResult.FRESH if the caller now owns processing,
            ALREADY_APPLIED or IN_PROGRESS otherwise
        """
        now = timezone.now()

        try:
            with transaction.atomic():
                WebhookEvent.objects.create(
                    external_event_id=event_id,
                    event_type=event_type,
                    payload=payload or {},
                    status=WebhookEventStatus.PROCESSING,
                    claimed_at=now,
                    retry_count=1,
                )
            logger.info(
                f"Claimed new event {event_id}",
                extra={"event_id": event_id, "event_type": event_type},
            )
            return BeginResult.FRESH
        except IntegrityError:
            # Unique external_event_id: someone has seen this id before
            pass

        webhook_event = WebhookEvent.objects.get(external_event_id=event_id)

        if webhook_event.is_processed:
            logger.info(
                f"Event {event_id} already applied",
                extra={"event_id": event_id},
            )
            return BeginResult.ALREADY_APPLIED

        if webhook_event.claim_is_live(now, lease_seconds=self.lease_seconds):
            logger.info(
                f"Event {event_id} is being processed by another worker",
                extra={"event_id": event_id, "claimed_at": str(webhook_event.claimed_at)},
            )
            return BeginResult.IN_PROGRESS

        # Failed or abandoned: take it over, conditioned on what we read
        reclaimed = WebhookEvent.objects.filter(
            pk=webhook_event.pk,
            status=webhook_event.status,
            claimed_at=webhook_event.claimed_at,
        ).update(
            status=WebhookEventStatus.PROCESSING,
            claimed_at=now,
            retry_count=F("retry_count") + 1,
            updated_at=now,
        )

        if reclaimed:
            logger.info(
                f"Reclaimed event {event_id} from {webhook_event.status}",
                extra={
                    "event_id": event_id,
                    "previous_status": webhook_event.status,
                    "retry_count": webhook_event.retry_count + 1,
                },
            )
            return BeginResult.FRESH

        logger.info(
            f"Lost reclaim race for event {event_id}",
            extra={"event_id": event_id},
        )
        return BeginResult.IN_PROGRESS

    def mark_applied(self, event_id: str) -> bool:
        """
        Record that every settlement step for the event succeeded.

        Returns:
            True if the row moved PROCESSING -> PROCESSED
        """
        now = timezone.now()
        updated = WebhookEvent.objects.filter(
            external_event_id=event_id,
            status=WebhookEventStatus.PROCESSING,
        ).update(
            status=WebhookEventStatus.PROCESSED,
            processed_at=now,
            error_message=None,
            updated_at=now,
        )
        if not updated:
            logger.warning(
                f"mark_applied found no PROCESSING row for {event_id}",
                extra={"event_id": event_id},
            )
        return bool(updated)

    def mark_failed(self, event_id: str, error: Exception | str) -> bool:
        """
        Record a failed attempt. The event stays retryable.

        Returns:
            True if the row moved PROCESSING -> FAILED
        """
        message = str(error)[:MAX_ERROR_LENGTH]
        updated = WebhookEvent.objects.filter(
            external_event_id=event_id,
            status=WebhookEventStatus.PROCESSING,
        ).update(
            status=WebhookEventStatus.FAILED,
            error_message=message,
            updated_at=timezone.now(),
        )
        logger.warning(
            f"Event {event_id} processing failed: {message}",
            extra={"event_id": event_id, "recorded": bool(updated)},
        )
        return bool(updated)
