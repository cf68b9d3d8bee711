"""
Webhook processor: runs one event through the idempotency guard and the
settlement orchestrator, and decides how the delivery is acknowledged.

Used by the webhook view for live deliveries and by the Celery tasks for
replaying stored events.
"""

from __future__ import annotations

import logging
import uuid

from django.db import DatabaseError

from settlement.events import SettlementEvent, parse_event
from settlement.exceptions import (
    SettlementError,
    SettlementNotFoundError,
    StaleRecordError,
    TransientSettlementError,
)
from settlement.models import WebhookEvent
from settlement.services.idempotency_guard import IdempotencyGuard
from settlement.services.orchestrator import SettlementOrchestrator
from settlement.types import AckStatus, BeginResult, ProcessingResult


logger = logging.getLogger(__name__)


class WebhookProcessor:
    """
    Guard + orchestrator, wired together.

    Args:
        guard: IdempotencyGuard (default instance if omitted)
        orchestrator: SettlementOrchestrator (default instance if omitted)
    """

    def __init__(
        self,
        guard: IdempotencyGuard | None = None,
        orchestrator: SettlementOrchestrator | None = None,
    ):
        self.guard = guard or IdempotencyGuard()
        self.orchestrator = orchestrator or SettlementOrchestrator()

    def process(self, event: SettlementEvent) -> ProcessingResult:
        """
        Apply an event at most once.

        Returns:
            ProcessingResult with ack PROCESSED, ALREADY_APPLIED or
            IN_PROGRESS

        Raises:
            TransientSettlementError: A database error or exhausted
                optimistic retries; the event is left retryable
            Exception: Anything unexpected, after marking the event failed
        """
        try:
            begin = self.guard.try_begin_processing(
                event.event_id, event.event_type, event.payload
            )
        except DatabaseError as e:
            # Nothing was claimed, so there is no failure to record
            raise TransientSettlementError(
                f"Could not claim event {event.event_id}",
                details={"event_id": event.event_id, "error": str(e)},
            ) from e

        if begin == BeginResult.ALREADY_APPLIED:
            return ProcessingResult(AckStatus.ALREADY_APPLIED)
        if begin == BeginResult.IN_PROGRESS:
            return ProcessingResult(AckStatus.IN_PROGRESS)

        try:
            result = self.orchestrator.settle(event)
            if not result.success:
                raise SettlementError(
                    result.error or "Settlement failed",
                    error_code=result.error_code,
                )
            self.guard.mark_applied(event.event_id)
        except (DatabaseError, StaleRecordError) as e:
            self._record_failure(event, e)
            raise TransientSettlementError(
                f"Transient failure settling {event.event_id}",
                details={"event_id": event.event_id, "error": str(e)},
            ) from e
        except Exception as e:
            self._record_failure(event, e)
            raise

        logger.info(
            f"Event {event.event_id} settled: {result.data.value}",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "outcome": result.data.value,
            },
        )
        return ProcessingResult(AckStatus.PROCESSED, result.data)

    def process_stored(self, webhook_event_id: uuid.UUID) -> ProcessingResult:
        """
        Replay a stored WebhookEvent through the guard.

        Raises:
            SettlementNotFoundError: No WebhookEvent with that id
            InvalidEventError: The stored payload no longer parses
        """
        try:
            webhook_event = WebhookEvent.objects.get(pk=webhook_event_id)
        except WebhookEvent.DoesNotExist:
            raise SettlementNotFoundError(
                f"WebhookEvent {webhook_event_id} not found",
                details={"webhook_event_id": str(webhook_event_id)},
            )

        if webhook_event.is_processed:
            return ProcessingResult(AckStatus.ALREADY_APPLIED)

        return self.process(parse_event(webhook_event.payload))

    def _record_failure(self, event: SettlementEvent, error: Exception) -> None:
        try:
            self.guard.mark_failed(event.event_id, f"{type(error).__name__}: {error}")
        except DatabaseError:
            # The claim lease still lets a later delivery take the event over
            logger.error(
                f"Could not record failure for event {event.event_id}",
                extra={"event_id": event.event_id},
                exc_info=True,
            )
