"""
Tests for StatusPropagator.
"""

import pytest

from marketplace.models import Application, Contract, Opportunity
from marketplace.states import ApplicationStatus, ContractStatus, OpportunityStatus
from marketplace.tests.factories import ApplicationFactory, UserFactory
from settlement.services import StatusPropagator
from settlement.types import FillResult, TransitionOutcome


@pytest.fixture
def propagator():
    return StatusPropagator()


class TestTransitionContract:
    """Tests for guarded contract transitions."""

    def test_activate_draft(self, draft_contract, propagator):
        result = propagator.transition_contract(draft_contract.id, "activate", event_id="evt_1")

        assert result.outcome == TransitionOutcome.APPLIED
        assert result.applied
        contract = Contract.objects.get(pk=draft_contract.pk)
        assert contract.status == ContractStatus.ACTIVE
        assert contract.activated_by_event_id == "evt_1"
        assert contract.start_date is not None

    def test_activate_twice_is_already_in_state(self, draft_contract, propagator):
        propagator.transition_contract(draft_contract.id, "activate", event_id="evt_1")

        result = propagator.transition_contract(draft_contract.id, "activate", event_id="evt_2")

        assert result.outcome == TransitionOutcome.ALREADY_IN_STATE
        assert result.contract.activated_by_event_id == "evt_1"

    def test_cancelled_contract_cannot_activate(self, cancelled_contract, propagator):
        result = propagator.transition_contract(cancelled_contract.id, "activate")

        assert result.outcome == TransitionOutcome.REJECTED
        assert Contract.objects.get(pk=cancelled_contract.pk).status == ContractStatus.CANCELLED

    def test_active_contract_cannot_cancel(self, active_contract, propagator):
        result = propagator.transition_contract(active_contract.id, "cancel")

        assert result.outcome == TransitionOutcome.REJECTED

    def test_refund_cancels_active_contract(self, active_contract, propagator):
        result = propagator.transition_contract(active_contract.id, "cancel_after_refund")

        assert result.applied
        contract = Contract.objects.get(pk=active_contract.pk)
        assert contract.status == ContractStatus.CANCELLED
        assert contract.cancelled_at is not None

    def test_missing_contract(self, db, propagator):
        result = propagator.transition_contract(
            "00000000-0000-0000-0000-000000000000", "activate"
        )

        assert result.outcome == TransitionOutcome.NOT_FOUND
        assert result.contract is None

    def test_unknown_transition(self, draft_contract, propagator):
        with pytest.raises(ValueError):
            propagator.transition_contract(draft_contract.id, "archive")


class TestFillOpportunity:
    """Tests for the one-way open -> filled update."""

    def test_first_fill_wins(self, opportunity, creator, propagator):
        assert propagator.fill_opportunity(opportunity.id, creator.id) == FillResult.FILLED

        opportunity = Opportunity.objects.get(pk=opportunity.pk)
        assert opportunity.status == OpportunityStatus.FILLED
        assert opportunity.selected_creator_id == creator.id
        assert opportunity.filled_at is not None

    def test_second_fill_does_not_overwrite(self, opportunity, creator, propagator):
        rival = UserFactory(username="rival")
        propagator.fill_opportunity(opportunity.id, creator.id)

        assert propagator.fill_opportunity(opportunity.id, rival.id) == FillResult.ALREADY_FILLED
        assert Opportunity.objects.get(pk=opportunity.pk).selected_creator_id == creator.id

    def test_missing_opportunity(self, db, creator, propagator):
        result = propagator.fill_opportunity("00000000-0000-0000-0000-000000000000", creator.id)

        assert result == FillResult.NOT_FOUND

    def test_is_filled_for(self, opportunity, creator, propagator):
        rival = UserFactory(username="rival")
        propagator.fill_opportunity(opportunity.id, creator.id)

        assert propagator.is_filled_for(opportunity.id, creator.id)
        assert not propagator.is_filled_for(opportunity.id, rival.id)


class TestMarkHired:
    """Tests for hiring the winning creator's application."""

    def test_hires_winner(self, application, opportunity, creator, propagator):
        propagator.fill_opportunity(opportunity.id, creator.id)

        assert propagator.mark_hired(opportunity.id, creator.id) is True

        application = Application.objects.get(pk=application.pk)
        assert application.status == ApplicationStatus.HIRED
        assert application.hired_at is not None

    def test_requires_opportunity_filled_for_creator(self, application, opportunity, creator, propagator):
        rival = UserFactory(username="rival")
        ApplicationFactory(opportunity=opportunity, creator=rival)
        propagator.fill_opportunity(opportunity.id, rival.id)

        assert propagator.mark_hired(opportunity.id, creator.id) is False
        assert Application.objects.get(pk=application.pk).status == ApplicationStatus.APPLIED

    def test_open_opportunity_hires_nobody(self, application, opportunity, creator, propagator):
        assert propagator.mark_hired(opportunity.id, creator.id) is False

    def test_replay_is_noop(self, application, opportunity, creator, propagator):
        propagator.fill_opportunity(opportunity.id, creator.id)
        propagator.mark_hired(opportunity.id, creator.id)

        assert propagator.mark_hired(opportunity.id, creator.id) is False
