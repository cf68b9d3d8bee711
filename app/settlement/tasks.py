"""
Celery tasks for settlement.

This module provides async tasks for:
- Replaying stored webhook events through the guard and orchestrator
- Re-queueing failed webhook events
- Releasing events whose processing claim expired
- Periodic cleanup of old processed events
- Crediting payments whose earnings credit never landed

Schedules live in CELERY_BEAT_SCHEDULE (config/settings.py).

Usage:
    from settlement.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from settlement.exceptions import InvalidEventError, SettlementNotFoundError, TransientSettlementError
from settlement.models import WebhookEvent
from settlement.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(TransientSettlementError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Replay a stored webhook event.

    The guard decides whether this worker may apply the event, so a task
    that races a live redelivery does nothing.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        TransientSettlementError: Re-raised to trigger Celery retry
    """
    from settlement.services import WebhookProcessor

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    logger.info(
        "Processing stored webhook event",
        extra={"webhook_event_id": str(webhook_event_id)},
    )

    try:
        result = WebhookProcessor().process_stored(webhook_event_id)
    except SettlementNotFoundError:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}
    except InvalidEventError as e:
        logger.error(
            f"Stored webhook payload is not a valid event: {e}",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "invalid", "webhook_event_id": str(webhook_event_id)}

    response = {
        "status": result.ack.value,
        "webhook_event_id": str(webhook_event_id),
    }
    if result.outcome is not None:
        response["outcome"] = result.outcome.value
    return response


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds failed events under SETTLEMENT_MAX_EVENT_RETRIES attempts and
    re-queues them for processing.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.SETTLEMENT_MAX_EVENT_RETRIES,
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "event_id": webhook.external_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count},
        )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to release webhooks whose processing claim expired.

    A worker that crashed mid-saga leaves its event in PROCESSING. Once
    the claim is older than the lease, the event is marked FAILED so
    retry_failed_webhooks picks it up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(seconds=settings.SETTLEMENT_PROCESSING_LEASE_SECONDS)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        claimed_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        # Conditioned on the claim we saw, so a fresh reclaim is left alone
        updated = WebhookEvent.objects.filter(
            pk=webhook.pk,
            status=WebhookEventStatus.PROCESSING,
            claimed_at=webhook.claimed_at,
        ).update(
            status=WebhookEventStatus.FAILED,
            error_message="Processing lease expired - reset for retry",
            updated_at=timezone.now(),
        )
        if updated:
            reset_count += 1
            logger.warning(
                "Reset stuck webhook",
                extra={
                    "webhook_event_id": str(webhook.id),
                    "event_id": webhook.external_event_id,
                    "claimed_at": webhook.claimed_at.isoformat(),
                },
            )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to delete old processed webhook events.

    Failed events are kept for debugging.

    Args:
        days: Delete processed webhooks older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Reconciliation Tasks
# =============================================================================


@shared_task
def reconcile_uncredited_payments() -> dict:
    """
    Periodic task to credit completed payments missing an earnings credit.

    Returns:
        Dict with checked/credited/failed/clawback_pending counts
    """
    from settlement.services import ReconciliationService

    stats = ReconciliationService().credit_missing_earnings()

    logger.info(
        f"Reconciliation credited {stats['credited']} of {stats['checked']} payments",
        extra=stats,
    )
    return stats
