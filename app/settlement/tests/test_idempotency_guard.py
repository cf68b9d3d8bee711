"""
Tests for IdempotencyGuard.

Tests cover:
- First claim, replays of applied events, live and expired claims
- Reclaiming failed events
- mark_applied / mark_failed transitions
"""

from datetime import timedelta

from django.utils import timezone

from settlement.models import WebhookEvent
from settlement.services import IdempotencyGuard
from settlement.state_machines import WebhookEventStatus
from settlement.tests.factories import WebhookEventFactory
from settlement.types import BeginResult


class TestTryBeginProcessing:
    """Tests for claiming event ids."""

    def test_new_event_is_fresh(self, db, guard):
        result = guard.try_begin_processing("evt_1", "payment.succeeded", {"id": "evt_1"})

        assert result == BeginResult.FRESH
        event = WebhookEvent.objects.get(external_event_id="evt_1")
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.claimed_at is not None
        assert event.retry_count == 1
        assert event.payload == {"id": "evt_1"}

    def test_processed_event_is_already_applied(self, db, guard):
        WebhookEventFactory(external_event_id="evt_1", status=WebhookEventStatus.PROCESSED)

        assert guard.try_begin_processing("evt_1") == BeginResult.ALREADY_APPLIED

    def test_live_claim_is_in_progress(self, db, guard):
        guard.try_begin_processing("evt_1")

        assert guard.try_begin_processing("evt_1") == BeginResult.IN_PROGRESS
        assert WebhookEvent.objects.get(external_event_id="evt_1").retry_count == 1

    def test_expired_claim_is_reclaimed(self, db, guard):
        WebhookEventFactory(
            external_event_id="evt_1",
            status=WebhookEventStatus.PROCESSING,
            claimed_at=timezone.now() - timedelta(seconds=121),
        )

        result = guard.try_begin_processing("evt_1")

        assert result == BeginResult.FRESH
        event = WebhookEvent.objects.get(external_event_id="evt_1")
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 2
        assert event.claimed_at > timezone.now() - timedelta(seconds=5)

    def test_guard_lease_overrides_settings(self, db):
        WebhookEventFactory(
            external_event_id="evt_1",
            status=WebhookEventStatus.PROCESSING,
            claimed_at=timezone.now() - timedelta(seconds=30),
        )

        assert IdempotencyGuard(lease_seconds=10).try_begin_processing("evt_1") == BeginResult.FRESH

    def test_failed_event_is_reclaimed(self, db, guard):
        WebhookEventFactory(external_event_id="evt_1", status=WebhookEventStatus.FAILED)

        assert guard.try_begin_processing("evt_1") == BeginResult.FRESH
        assert guard.try_begin_processing("evt_1") == BeginResult.IN_PROGRESS

    def test_hundred_replays_claim_once(self, db, guard):
        results = [guard.try_begin_processing("evt_1") for _ in range(100)]

        assert results.count(BeginResult.FRESH) == 1
        assert set(results[1:]) == {BeginResult.IN_PROGRESS}
        assert WebhookEvent.objects.filter(external_event_id="evt_1").count() == 1

    def test_lease_comes_from_settings(self, settings):
        settings.SETTLEMENT_PROCESSING_LEASE_SECONDS = 7

        assert IdempotencyGuard().lease_seconds == 7


class TestMarkApplied:
    """Tests for recording outcomes."""

    def test_mark_applied(self, db, guard):
        guard.try_begin_processing("evt_1")

        assert guard.mark_applied("evt_1") is True

        event = WebhookEvent.objects.get(external_event_id="evt_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert guard.try_begin_processing("evt_1") == BeginResult.ALREADY_APPLIED

    def test_mark_applied_requires_processing(self, db, guard):
        WebhookEventFactory(external_event_id="evt_1", status=WebhookEventStatus.FAILED)

        assert guard.mark_applied("evt_1") is False

    def test_mark_failed_keeps_event_retryable(self, db, guard):
        guard.try_begin_processing("evt_1")

        assert guard.mark_failed("evt_1", RuntimeError("database went away")) is True

        event = WebhookEvent.objects.get(external_event_id="evt_1")
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "database went away"
        assert guard.try_begin_processing("evt_1") == BeginResult.FRESH

    def test_mark_failed_truncates_error(self, db, guard):
        guard.try_begin_processing("evt_1")

        guard.mark_failed("evt_1", "x" * 5000)

        event = WebhookEvent.objects.get(external_event_id="evt_1")
        assert len(event.error_message) == 2000
