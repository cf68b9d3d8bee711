"""
Settlement orchestrator: applies one verified event to the marketplace.

Each event variant has exactly one handler. A handler runs a saga of
independently idempotent steps (contract transition, ledger insert,
earnings credit, opportunity fill, application hire). If a step raises,
the event stays unapplied in the idempotency guard and a redelivery
resumes: finished steps are no-ops the second time.

Business anomalies (unknown contract, disallowed transition, second
payment for an active contract) are logged at WARNING with an
`anomaly` code and returned as outcomes. They are acknowledged because
redelivery cannot fix them.

Usage:
    from settlement.services import SettlementOrchestrator

    result = SettlementOrchestrator().settle(event)
    outcome = result.data  # SettlementOutcome
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult

from marketplace.models import Contract

from settlement.events import (
    ChargeRefunded,
    PaymentFailed,
    PaymentSucceeded,
    SettlementEvent,
    UnhandledEvent,
)
from settlement.services.earnings_aggregator import EarningsAggregator
from settlement.services.ledger_writer import LedgerWriter
from settlement.services.status_propagator import StatusPropagator
from settlement.state_machines import PaymentRecordStatus
from settlement.types import FillResult, SettlementOutcome, TransitionOutcome


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event variant classes to orchestrator handler functions
SETTLEMENT_HANDLERS: dict[type, Callable] = {}


def handles(event_class: type) -> Callable:
    """
    Decorator to register the orchestrator handler for an event variant.

    Usage:
        @handles(PaymentSucceeded)
        def _settle_payment_succeeded(self, event) -> ServiceResult:
            ...
    """

    def decorator(func: Callable) -> Callable:
        SETTLEMENT_HANDLERS[event_class] = func
        return func

    return decorator


def _log_anomaly(anomaly: str, message: str, event: SettlementEvent, **context) -> None:
    logger.warning(
        message,
        extra={
            "anomaly": anomaly,
            "event_id": event.event_id,
            "event_type": event.event_type,
            **context,
        },
    )


class SettlementOrchestrator:
    """
    Coordinate ledger, earnings and status writes for one event.

    Args:
        ledger: LedgerWriter (default instance if omitted)
        earnings: EarningsAggregator (default instance if omitted)
        propagator: StatusPropagator (default instance if omitted)
    """

    def __init__(
        self,
        ledger: LedgerWriter | None = None,
        earnings: EarningsAggregator | None = None,
        propagator: StatusPropagator | None = None,
    ):
        self.ledger = ledger or LedgerWriter()
        self.earnings = earnings or EarningsAggregator()
        self.propagator = propagator or StatusPropagator()

    def settle(self, event: SettlementEvent) -> ServiceResult[SettlementOutcome]:
        """
        Apply an event.

        Args:
            event: Parsed, verified event

        Returns:
            ServiceResult whose data is the SettlementOutcome

        Raises:
            DatabaseError / StaleRecordError: A step failed transiently;
                the caller leaves the event retryable
        """
        handler = SETTLEMENT_HANDLERS.get(type(event))
        if handler is None:
            logger.info(
                f"No settlement handler for {event.event_type}",
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            return ServiceResult.success(SettlementOutcome.IGNORED)

        logger.info(
            f"Settling {event.event_type}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        return handler(self, event)

    # =========================================================================
    # Payment Succeeded
    # =========================================================================

    @handles(PaymentSucceeded)
    def _settle_payment_succeeded(self, event: PaymentSucceeded) -> ServiceResult:
        """
        Activate the contract, record the payment, credit the creator,
        fill the opportunity and hire the creator.
        """
        contract = Contract.objects.by_external_ref(event.payment_ref)
        if contract is None:
            _log_anomaly(
                "contract_not_found",
                f"No contract for payment {event.payment_ref}",
                event,
                payment_ref=event.payment_ref,
            )
            return ServiceResult.success(SettlementOutcome.NOT_FOUND)

        self._check_metadata(event, contract)

        transition = self.propagator.transition_contract(
            contract.id, "activate", event_id=event.event_id
        )

        if transition.outcome == TransitionOutcome.NOT_FOUND:
            _log_anomaly(
                "contract_not_found",
                f"Contract {contract.id} disappeared before activation",
                event,
                contract_id=str(contract.id),
            )
            return ServiceResult.success(SettlementOutcome.NOT_FOUND)

        if transition.outcome == TransitionOutcome.REJECTED:
            _log_anomaly(
                "invalid_transition",
                f"Cannot activate contract {contract.id} from {transition.contract.status}",
                event,
                contract_id=str(contract.id),
                contract_status=transition.contract.status,
            )
            return ServiceResult.success(SettlementOutcome.INVALID_TRANSITION)

        contract = transition.contract
        if (
            transition.outcome == TransitionOutcome.ALREADY_IN_STATE
            and contract.activated_by_event_id != event.event_id
        ):
            _log_anomaly(
                "duplicate_payment",
                f"Contract {contract.id} already activated by another event",
                event,
                contract_id=str(contract.id),
                activated_by_event_id=contract.activated_by_event_id,
            )
            return ServiceResult.success(SettlementOutcome.DUPLICATE_PAYMENT)

        # Activated now, or by this same event on an earlier attempt: resume
        record = self.ledger.record_payment(
            event.event_id,
            contract.id,
            amount=contract.total_amount,
            payout_amount=contract.creator_payout_amount,
            commission_amount=contract.commission_amount,
            status=PaymentRecordStatus.COMPLETED,
            payment_ref=event.payment_ref,
            charge_ref=event.charge_ref,
            currency=contract.currency,
        )

        if record.status == PaymentRecordStatus.COMPLETED:
            self.earnings.credit(
                contract.creator_id,
                contract.creator_payout_amount,
                payment_record_id=record.id,
            )

        fill = self.propagator.fill_opportunity(contract.opportunity_id, contract.creator_id)
        if fill == FillResult.FILLED or (
            fill == FillResult.ALREADY_FILLED
            and self.propagator.is_filled_for(contract.opportunity_id, contract.creator_id)
        ):
            self.propagator.mark_hired(contract.opportunity_id, contract.creator_id)
        else:
            _log_anomaly(
                "opportunity_unavailable",
                f"Opportunity {contract.opportunity_id} not filled for creator {contract.creator_id}",
                event,
                opportunity_id=str(contract.opportunity_id),
                creator_id=str(contract.creator_id),
                fill_result=fill.value,
            )

        return ServiceResult.success(SettlementOutcome.APPLIED)

    # =========================================================================
    # Payment Failed
    # =========================================================================

    @handles(PaymentFailed)
    def _settle_payment_failed(self, event: PaymentFailed) -> ServiceResult:
        """
        Cancel the draft contract and record the failed attempt.
        """
        contract = Contract.objects.by_external_ref(event.payment_ref)
        if contract is None:
            _log_anomaly(
                "contract_not_found",
                f"No contract for failed payment {event.payment_ref}",
                event,
                payment_ref=event.payment_ref,
            )
            return ServiceResult.success(SettlementOutcome.NOT_FOUND)

        transition = self.propagator.transition_contract(
            contract.id, "cancel", event_id=event.event_id
        )

        if transition.outcome == TransitionOutcome.NOT_FOUND:
            return ServiceResult.success(SettlementOutcome.NOT_FOUND)

        # Cancelled after a refund means the payment once succeeded
        if transition.outcome == TransitionOutcome.REJECTED or (
            transition.outcome == TransitionOutcome.ALREADY_IN_STATE
            and transition.contract.activated_by_event_id
        ):
            _log_anomaly(
                "invalid_transition",
                f"Payment failure for contract {contract.id} in {transition.contract.status}",
                event,
                contract_id=str(contract.id),
                contract_status=transition.contract.status,
            )
            return ServiceResult.success(SettlementOutcome.INVALID_TRANSITION)

        contract = transition.contract
        self.ledger.record_payment(
            event.event_id,
            contract.id,
            amount=contract.total_amount,
            payout_amount=0,
            commission_amount=0,
            status=PaymentRecordStatus.FAILED,
            payment_ref=event.payment_ref,
            currency=contract.currency,
        )

        logger.info(
            f"Payment failed for contract {contract.id}: {event.failure_reason}",
            extra={"event_id": event.event_id, "contract_id": str(contract.id)},
        )
        return ServiceResult.success(SettlementOutcome.APPLIED)

    # =========================================================================
    # Charge Refunded
    # =========================================================================

    @handles(ChargeRefunded)
    def _settle_charge_refunded(self, event: ChargeRefunded) -> ServiceResult:
        """
        Mark the payment refunded and cancel the active contract.

        Earnings already credited are not reversed. The refund is logged
        with earnings_clawback_required so reconciliation can pick it up.
        """
        record = self.ledger.find_for_refund(event.charge_ref, event.payment_ref)
        if record is None:
            _log_anomaly(
                "payment_not_found",
                f"No payment record for refunded charge {event.charge_ref}",
                event,
                charge_ref=event.charge_ref,
                payment_ref=event.payment_ref,
            )
            return ServiceResult.success(SettlementOutcome.NOT_FOUND)

        if record.status == PaymentRecordStatus.FAILED:
            _log_anomaly(
                "invalid_transition",
                f"Refund for failed payment record {record.id}",
                event,
                payment_record_id=str(record.id),
            )
            return ServiceResult.success(SettlementOutcome.INVALID_TRANSITION)

        if 0 < event.amount_refunded < record.amount:
            # The whole record is still treated as refunded
            _log_anomaly(
                "partial_refund",
                f"Charge {event.charge_ref} refunded {event.amount_refunded} of {record.amount}",
                event,
                payment_record_id=str(record.id),
                amount_refunded=event.amount_refunded,
                amount=record.amount,
            )

        self.ledger.mark_refunded(record, charge_ref=event.charge_ref)

        transition = self.propagator.transition_contract(
            record.contract_id, "cancel_after_refund", event_id=event.event_id
        )
        if transition.outcome == TransitionOutcome.REJECTED:
            _log_anomaly(
                "invalid_transition",
                f"Refunded contract {record.contract_id} is {transition.contract.status}",
                event,
                contract_id=str(record.contract_id),
                contract_status=transition.contract.status,
            )
            return ServiceResult.success(SettlementOutcome.INVALID_TRANSITION)

        if record.earnings_credited_at is not None:
            logger.warning(
                f"Refunded payment {record.id} was already credited to the creator",
                extra={
                    "anomaly": "earnings_clawback_required",
                    "earnings_clawback_required": True,
                    "event_id": event.event_id,
                    "payment_record_id": str(record.id),
                    "payout_amount": record.payout_amount,
                },
            )

        return ServiceResult.success(SettlementOutcome.APPLIED)

    @handles(UnhandledEvent)
    def _settle_unhandled(self, event: UnhandledEvent) -> ServiceResult:
        logger.info(
            f"Ignoring event type {event.event_type}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        return ServiceResult.success(SettlementOutcome.IGNORED)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_metadata(self, event: PaymentSucceeded, contract: Contract) -> None:
        # The contract row is authoritative; metadata is only cross-checked
        mismatches = {}
        if event.creator_id and event.creator_id != str(contract.creator_id):
            mismatches["creator_id"] = event.creator_id
        if event.opportunity_id and event.opportunity_id != str(contract.opportunity_id):
            mismatches["opportunity_id"] = event.opportunity_id
        if event.client_id and contract.client_id and event.client_id != str(contract.client_id):
            mismatches["client_id"] = event.client_id
        if mismatches:
            _log_anomaly(
                "metadata_mismatch",
                f"Event metadata does not match contract {contract.id}",
                event,
                contract_id=str(contract.id),
                **mismatches,
            )
