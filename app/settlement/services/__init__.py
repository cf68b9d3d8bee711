"""
Settlement services.

This module provides:
- IdempotencyGuard: Claims event ids, records applied/failed
- LedgerWriter: Insert-if-absent PaymentRecords
- EarningsAggregator: Optimistic, exactly-once earnings credits
- StatusPropagator: Guarded Contract/Opportunity/Application writes
- SettlementOrchestrator: One handler per event variant
- WebhookProcessor: Guard + orchestrator for a single delivery
- ReconciliationService: Heals uncredited payments

Usage:
    from settlement.services import WebhookProcessor

    result = WebhookProcessor().process(event)
"""

from settlement.services.earnings_aggregator import EarningsAggregator
from settlement.services.idempotency_guard import IdempotencyGuard
from settlement.services.ledger_writer import LedgerWriter
from settlement.services.orchestrator import SETTLEMENT_HANDLERS, SettlementOrchestrator
from settlement.services.processor import WebhookProcessor
from settlement.services.reconciliation import ReconciliationService
from settlement.services.status_propagator import StatusPropagator

__all__ = [
    "EarningsAggregator",
    "IdempotencyGuard",
    "LedgerWriter",
    "ReconciliationService",
    "SETTLEMENT_HANDLERS",
    "SettlementOrchestrator",
    "StatusPropagator",
    "WebhookProcessor",
]
