"""
Tests for SettlementOrchestrator.

Tests cover:
- Payment succeeded: activation, ledger, earnings, fill, hire
- Replays of the same event (1, 2 and 100 deliveries)
- Two contracts racing for one opportunity
- Payment failed, before and after success
- Unknown contracts and payment records
- Refunds and the earnings clawback log
"""

import logging

import pytest

from marketplace.models import Application, Contract, Opportunity
from marketplace.states import ApplicationStatus, ContractStatus, OpportunityStatus
from marketplace.tests.factories import ApplicationFactory, ContractFactory, UserFactory
from settlement.events import parse_event
from settlement.models import CreatorEarnings, PaymentRecord, WebhookEvent
from settlement.services import SETTLEMENT_HANDLERS
from settlement.state_machines import PaymentRecordStatus, WebhookEventStatus
from settlement.tests.factories import (
    charge_refunded_payload,
    payment_failed_payload,
    payment_succeeded_payload,
)
from settlement.types import AckStatus, SettlementOutcome


def anomalies(caplog):
    return [r.anomaly for r in caplog.records if hasattr(r, "anomaly")]


def succeeded(event_id="evt_1", payment_ref="pi_1", **kwargs):
    return parse_event(payment_succeeded_payload(event_id, payment_ref, **kwargs))


class TestPaymentSucceeded:
    """Tests for the happy path."""

    def test_settles_contract(self, draft_contract, orchestrator, creator, opportunity, application):
        result = orchestrator.settle(succeeded(charge_ref="ch_1"))

        assert result.success
        assert result.data == SettlementOutcome.APPLIED

        contract = Contract.objects.get(pk=draft_contract.pk)
        assert contract.status == ContractStatus.ACTIVE
        assert contract.activated_by_event_id == "evt_1"

        record = PaymentRecord.objects.get(external_event_id="evt_1")
        assert record.contract_id == contract.id
        assert record.amount == 10000
        assert record.payout_amount == 8000
        assert record.commission_amount == 2000
        assert record.status == PaymentRecordStatus.COMPLETED
        assert record.external_charge_ref == "ch_1"
        assert record.earnings_credited

        assert CreatorEarnings.objects.get(creator=creator).total_earnings == 8000

        opportunity = Opportunity.objects.get(pk=opportunity.pk)
        assert opportunity.status == OpportunityStatus.FILLED
        assert opportunity.selected_creator_id == creator.id
        assert Application.objects.get(pk=application.pk).status == ApplicationStatus.HIRED

    def test_resumes_after_partial_settlement(self, draft_contract, orchestrator, creator):
        # An earlier attempt activated the contract and then crashed
        draft_contract.activate(event_id="evt_1")
        draft_contract.save()

        result = orchestrator.settle(succeeded())

        assert result.data == SettlementOutcome.APPLIED
        assert PaymentRecord.objects.filter(external_event_id="evt_1").count() == 1
        assert CreatorEarnings.objects.get(creator=creator).total_earnings == 8000

    def test_second_event_for_active_contract_is_duplicate(
        self, active_contract, orchestrator, caplog
    ):
        result = orchestrator.settle(succeeded(event_id="evt_other"))

        assert result.data == SettlementOutcome.DUPLICATE_PAYMENT
        assert not PaymentRecord.objects.filter(external_event_id="evt_other").exists()
        assert "duplicate_payment" in anomalies(caplog)

    def test_unknown_contract(self, db, orchestrator, caplog):
        result = orchestrator.settle(succeeded(payment_ref="pi_unknown"))

        assert result.success
        assert result.data == SettlementOutcome.NOT_FOUND
        assert PaymentRecord.objects.count() == 0
        assert CreatorEarnings.objects.count() == 0
        assert "contract_not_found" in anomalies(caplog)

    def test_cancelled_contract_is_not_activated(self, cancelled_contract, orchestrator, caplog):
        result = orchestrator.settle(succeeded())

        assert result.data == SettlementOutcome.INVALID_TRANSITION
        assert Contract.objects.get(pk=cancelled_contract.pk).status == ContractStatus.CANCELLED
        assert PaymentRecord.objects.count() == 0
        assert "invalid_transition" in anomalies(caplog)

    def test_metadata_mismatch_is_logged_not_trusted(self, draft_contract, orchestrator, creator, caplog):
        rival = UserFactory(username="rival")

        result = orchestrator.settle(succeeded(metadata={"creatorId": str(rival.id)}))

        assert result.data == SettlementOutcome.APPLIED
        assert "metadata_mismatch" in anomalies(caplog)
        assert CreatorEarnings.objects.get(creator=creator).total_earnings == 8000
        assert not CreatorEarnings.objects.filter(creator=rival).exists()

    def test_client_mismatch_is_logged(self, draft_contract, orchestrator, caplog):
        result = orchestrator.settle(succeeded(metadata={"clientId": "someone-else"}))

        assert result.data == SettlementOutcome.APPLIED
        mismatch = [r for r in caplog.records if getattr(r, "anomaly", None) == "metadata_mismatch"]
        assert mismatch[0].client_id == "someone-else"

    def test_matching_metadata_is_quiet(
        self, draft_contract, orchestrator, caplog, creator, client_user, opportunity
    ):
        orchestrator.settle(
            succeeded(
                metadata={
                    "creatorId": str(creator.id),
                    "clientId": str(client_user.id),
                    "opportunityId": str(opportunity.id),
                }
            )
        )

        assert "metadata_mismatch" not in anomalies(caplog)

    def test_payment_intent_alias(self, draft_contract, orchestrator):
        result = orchestrator.settle(succeeded(event_type="payment_intent.succeeded"))

        assert result.data == SettlementOutcome.APPLIED


class TestReplays:
    """Replaying an event through the processor applies it once."""

    @pytest.mark.parametrize("deliveries", [1, 2, 100])
    def test_replays_apply_once(self, draft_contract, processor, creator, deliveries):
        event = succeeded()

        results = [processor.process(event) for _ in range(deliveries)]

        assert results[0].ack == AckStatus.PROCESSED
        assert results[0].outcome == SettlementOutcome.APPLIED
        assert all(r.ack == AckStatus.ALREADY_APPLIED for r in results[1:])

        assert PaymentRecord.objects.filter(external_event_id="evt_1").count() == 1
        earnings = CreatorEarnings.objects.get(creator=creator)
        assert earnings.total_earnings == 8000
        assert earnings.version == 2
        assert WebhookEvent.objects.get(external_event_id="evt_1").status == (
            WebhookEventStatus.PROCESSED
        )


class TestOpportunityRace:
    """Two contracts for one opportunity, both paid."""

    def test_first_payment_wins(self, draft_contract, orchestrator, opportunity, creator, application, caplog):
        rival = UserFactory(username="rival")
        rival_application = ApplicationFactory(opportunity=opportunity, creator=rival)
        rival_contract = ContractFactory(
            opportunity=opportunity,
            creator=rival,
            total_amount=5000,
            creator_payout_amount=4000,
            commission_amount=1000,
            external_payment_ref="pi_2",
        )

        orchestrator.settle(succeeded("evt_1", "pi_1"))
        result = orchestrator.settle(succeeded("evt_2", "pi_2"))

        # Both payments are real money: both are recorded and credited
        assert result.data == SettlementOutcome.APPLIED
        assert Contract.objects.get(pk=rival_contract.pk).status == ContractStatus.ACTIVE
        assert CreatorEarnings.objects.get(creator=rival).total_earnings == 4000

        opportunity = Opportunity.objects.get(pk=opportunity.pk)
        assert opportunity.selected_creator_id == creator.id
        assert Application.objects.get(pk=application.pk).status == ApplicationStatus.HIRED
        assert Application.objects.get(pk=rival_application.pk).status == ApplicationStatus.APPLIED
        assert "opportunity_unavailable" in anomalies(caplog)


class TestPaymentFailed:
    """Tests for declined payments."""

    def test_cancels_draft_and_records_failure(self, draft_contract, orchestrator, creator):
        event = parse_event(payment_failed_payload("evt_f", "pi_1", message="Card declined"))

        result = orchestrator.settle(event)

        assert result.data == SettlementOutcome.APPLIED
        contract = Contract.objects.get(pk=draft_contract.pk)
        assert contract.status == ContractStatus.CANCELLED
        record = PaymentRecord.objects.get(external_event_id="evt_f")
        assert record.status == PaymentRecordStatus.FAILED
        assert record.payout_amount == 0
        assert record.commission_amount == 0
        assert not CreatorEarnings.objects.filter(creator=creator).exists()

    def test_failure_after_success_is_rejected(self, draft_contract, orchestrator, creator, caplog):
        orchestrator.settle(succeeded())

        result = orchestrator.settle(parse_event(payment_failed_payload("evt_f", "pi_1")))

        assert result.data == SettlementOutcome.INVALID_TRANSITION
        assert Contract.objects.get(pk=draft_contract.pk).status == ContractStatus.ACTIVE
        assert not PaymentRecord.objects.filter(external_event_id="evt_f").exists()
        assert CreatorEarnings.objects.get(creator=creator).total_earnings == 8000
        assert "invalid_transition" in anomalies(caplog)

    def test_failure_after_refund_is_rejected(self, draft_contract, orchestrator, caplog):
        orchestrator.settle(succeeded(charge_ref="ch_1"))
        orchestrator.settle(parse_event(charge_refunded_payload("evt_r", "ch_1")))

        result = orchestrator.settle(parse_event(payment_failed_payload("evt_f", "pi_1")))

        assert result.data == SettlementOutcome.INVALID_TRANSITION
        assert not PaymentRecord.objects.filter(external_event_id="evt_f").exists()

    def test_unknown_contract(self, db, orchestrator):
        result = orchestrator.settle(parse_event(payment_failed_payload("evt_f", "pi_unknown")))

        assert result.data == SettlementOutcome.NOT_FOUND


class TestChargeRefunded:
    """Tests for refunds."""

    def test_refund_cancels_contract_and_flags_clawback(self, draft_contract, orchestrator, creator, caplog):
        orchestrator.settle(succeeded(charge_ref="ch_1"))
        caplog.clear()

        with caplog.at_level(logging.WARNING):
            result = orchestrator.settle(parse_event(charge_refunded_payload("evt_r", "ch_1")))

        assert result.data == SettlementOutcome.APPLIED
        record = PaymentRecord.objects.get(external_event_id="evt_1")
        assert record.status == PaymentRecordStatus.REFUNDED
        assert Contract.objects.get(pk=draft_contract.pk).status == ContractStatus.CANCELLED
        # Earnings are not reversed automatically
        assert CreatorEarnings.objects.get(creator=creator).total_earnings == 8000
        assert any(getattr(r, "earnings_clawback_required", False) for r in caplog.records)

    def test_partial_refund_is_flagged(self, draft_contract, orchestrator, caplog):
        orchestrator.settle(succeeded(charge_ref="ch_1"))

        result = orchestrator.settle(
            parse_event(charge_refunded_payload("evt_r", "ch_1", amount_refunded=2500))
        )

        assert result.data == SettlementOutcome.APPLIED
        assert "partial_refund" in anomalies(caplog)
        record = PaymentRecord.objects.get(external_event_id="evt_1")
        assert record.status == PaymentRecordStatus.REFUNDED

    def test_full_refund_is_not_partial(self, draft_contract, orchestrator, caplog):
        orchestrator.settle(succeeded(charge_ref="ch_1"))

        orchestrator.settle(parse_event(charge_refunded_payload("evt_r", "ch_1")))

        assert "partial_refund" not in anomalies(caplog)

    def test_refund_matched_by_payment_ref(self, draft_contract, orchestrator):
        orchestrator.settle(succeeded())

        result = orchestrator.settle(
            parse_event(charge_refunded_payload("evt_r", "ch_late", payment_ref="pi_1"))
        )

        assert result.data == SettlementOutcome.APPLIED
        record = PaymentRecord.objects.get(external_event_id="evt_1")
        assert record.status == PaymentRecordStatus.REFUNDED
        assert record.external_charge_ref == "ch_late"

    def test_refund_replay_is_applied_once(self, draft_contract, orchestrator):
        orchestrator.settle(succeeded(charge_ref="ch_1"))
        event = parse_event(charge_refunded_payload("evt_r", "ch_1"))

        orchestrator.settle(event)
        result = orchestrator.settle(event)

        assert result.data == SettlementOutcome.APPLIED
        assert Contract.objects.get(pk=draft_contract.pk).status == ContractStatus.CANCELLED

    def test_unknown_charge(self, db, orchestrator, caplog):
        result = orchestrator.settle(parse_event(charge_refunded_payload("evt_r", "ch_missing")))

        assert result.data == SettlementOutcome.NOT_FOUND
        assert "payment_not_found" in anomalies(caplog)

    def test_refund_of_failed_payment(self, draft_contract, orchestrator):
        orchestrator.settle(parse_event(payment_failed_payload("evt_f", "pi_1")))

        result = orchestrator.settle(
            parse_event(charge_refunded_payload("evt_r", "ch_none", payment_ref="pi_1"))
        )

        # Failed records are never refund targets
        assert result.data == SettlementOutcome.NOT_FOUND


class TestUnhandledEvents:
    """Tests for event types the pipeline does not act on."""

    def test_ignored_without_writes(self, db, orchestrator):
        event = parse_event({"id": "evt_x", "type": "customer.created", "data": {}})

        result = orchestrator.settle(event)

        assert result.data == SettlementOutcome.IGNORED
        assert PaymentRecord.objects.count() == 0

    def test_every_variant_has_one_handler(self):
        assert len(SETTLEMENT_HANDLERS) == 4
