"""
Status propagator: guarded state changes on Contract, Opportunity and
Application.

Every write here is a single-row change conditioned on the state the
caller expects, so concurrent or replayed events cannot move an entity
backwards or apply the same edge twice.

Usage:
    from settlement.services import StatusPropagator

    propagator = StatusPropagator()
    transition = propagator.transition_contract(contract.id, "activate", event_id="evt_1")
    if propagator.fill_opportunity(opportunity_id, creator_id) == FillResult.FILLED:
        propagator.mark_hired(opportunity_id, creator_id)
"""

from __future__ import annotations

import logging
import uuid

from django.db import transaction
from django.utils import timezone

from django_fsm import can_proceed

from marketplace.models import Application, Contract, Opportunity
from marketplace.states import ApplicationStatus, ContractStatus, OpportunityStatus

from settlement.types import ContractTransition, FillResult, TransitionOutcome


logger = logging.getLogger(__name__)


# Contract transition name -> state it leads to
CONTRACT_TRANSITIONS: dict[str, str] = {
    "activate": ContractStatus.ACTIVE,
    "cancel": ContractStatus.CANCELLED,
    "cancel_after_refund": ContractStatus.CANCELLED,
}


class StatusPropagator:
    """
    Apply marketplace status changes with single-row guarded writes.
    """

    def transition_contract(
        self,
        contract_id: uuid.UUID,
        transition: str,
        event_id: str | None = None,
    ) -> ContractTransition:
        """
        Run a django-fsm transition on a row-locked contract.

        Args:
            contract_id: Contract to transition
            transition: One of CONTRACT_TRANSITIONS
            event_id: Event applying the transition, recorded on activation

        Returns:
            ContractTransition whose outcome is APPLIED, ALREADY_IN_STATE
            (contract already in the target state), REJECTED (edge not
            allowed from the current state) or NOT_FOUND
        """
        if transition not in CONTRACT_TRANSITIONS:
            raise ValueError(f"Unknown contract transition: {transition}")
        target = CONTRACT_TRANSITIONS[transition]

        with transaction.atomic():
            contract = Contract.objects.select_for_update().filter(pk=contract_id).first()
            if contract is None:
                return ContractTransition(TransitionOutcome.NOT_FOUND)

            method = getattr(contract, transition)
            if can_proceed(method):
                from_status = contract.status
                method(event_id=event_id)
                contract.save()
                logger.info(
                    f"Contract {contract_id} {from_status} -> {contract.status}",
                    extra={
                        "contract_id": str(contract_id),
                        "transition": transition,
                        "event_id": event_id,
                    },
                )
                return ContractTransition(TransitionOutcome.APPLIED, contract)

            if contract.status == target:
                return ContractTransition(TransitionOutcome.ALREADY_IN_STATE, contract)

            return ContractTransition(TransitionOutcome.REJECTED, contract)

    def fill_opportunity(self, opportunity_id: uuid.UUID, creator_id) -> FillResult:
        """
        Move an opportunity open -> filled for one creator.

        Exactly one concurrent caller gets FILLED; the rest get
        ALREADY_FILLED. Never raises for a lost race.
        """
        now = timezone.now()
        updated = Opportunity.objects.filter(
            pk=opportunity_id,
            status=OpportunityStatus.OPEN,
        ).update(
            status=OpportunityStatus.FILLED,
            selected_creator_id=creator_id,
            filled_at=now,
            updated_at=now,
        )

        if updated:
            logger.info(
                f"Opportunity {opportunity_id} filled",
                extra={"opportunity_id": str(opportunity_id), "creator_id": str(creator_id)},
            )
            return FillResult.FILLED

        if Opportunity.objects.filter(pk=opportunity_id).exists():
            return FillResult.ALREADY_FILLED
        return FillResult.NOT_FOUND

    def is_filled_for(self, opportunity_id: uuid.UUID, creator_id) -> bool:
        return Opportunity.objects.filter(
            pk=opportunity_id,
            status=OpportunityStatus.FILLED,
            selected_creator_id=creator_id,
        ).exists()

    def mark_hired(self, opportunity_id: uuid.UUID, creator_id) -> bool:
        """
        Move the creator's application applied -> hired.

        Only matches when the opportunity is filled for this same creator.

        Returns:
            True if an application changed state
        """
        now = timezone.now()
        filled_for_creator = Opportunity.objects.filter(
            pk=opportunity_id,
            status=OpportunityStatus.FILLED,
            selected_creator_id=creator_id,
        )
        updated = Application.objects.filter(
            opportunity_id__in=filled_for_creator.values("pk"),
            creator_id=creator_id,
            status=ApplicationStatus.APPLIED,
        ).update(
            status=ApplicationStatus.HIRED,
            hired_at=now,
            updated_at=now,
        )

        if updated:
            logger.info(
                f"Creator {creator_id} hired for opportunity {opportunity_id}",
                extra={"opportunity_id": str(opportunity_id), "creator_id": str(creator_id)},
            )
        return bool(updated)
