"""
Result types exchanged between settlement services.

Types:
    BeginResult: Outcome of IdempotencyGuard.try_begin_processing
    FillResult: Outcome of StatusPropagator.fill_opportunity
    TransitionOutcome / ContractTransition: Outcome of a contract transition
    SettlementOutcome: What the orchestrator did with an event
    AckStatus / ProcessingResult: What the webhook endpoint should answer
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketplace.models import Contract


class BeginResult(str, Enum):
    """Outcome of claiming an event id for processing."""

    FRESH = "fresh"
    ALREADY_APPLIED = "already_applied"
    IN_PROGRESS = "in_progress"


class FillResult(str, Enum):
    """Outcome of a conditioned open -> filled update."""

    FILLED = "filled"
    ALREADY_FILLED = "already_filled"
    NOT_FOUND = "not_found"


class TransitionOutcome(str, Enum):
    """Outcome of a guarded contract transition."""

    APPLIED = "applied"
    ALREADY_IN_STATE = "already_in_state"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"


class SettlementOutcome(str, Enum):
    """
    What the orchestrator did with an event.

    Every value is acknowledged to the sender: anomalies are logged for
    reconciliation, because redelivery would not resolve them.
    """

    APPLIED = "applied"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_PAYMENT = "duplicate_payment"
    IGNORED = "ignored"


class AckStatus(str, Enum):
    """How the webhook delivery should be acknowledged."""

    PROCESSED = "processed"
    ALREADY_APPLIED = "already_applied"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class ContractTransition:
    """Result of StatusPropagator.transition_contract."""

    outcome: TransitionOutcome
    contract: Contract | None = None

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


@dataclass(frozen=True)
class ProcessingResult:
    """Result of running one event through guard and orchestrator."""

    ack: AckStatus
    outcome: SettlementOutcome | None = None

    def to_response(self) -> dict:
        body = {
            "received": self.ack != AckStatus.IN_PROGRESS,
            "status": self.ack.value,
        }
        if self.outcome is not None:
            body["outcome"] = self.outcome.value
        return body


__all__ = [
    "AckStatus",
    "BeginResult",
    "ContractTransition",
    "FillResult",
    "ProcessingResult",
    "SettlementOutcome",
    "TransitionOutcome",
]
