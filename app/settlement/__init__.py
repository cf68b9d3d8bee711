"""
Settlement app: applies payment processor webhooks to marketplace state.

Pipeline:
    WebhookVerifier -> IdempotencyGuard -> SettlementOrchestrator
        -> {LedgerWriter, EarningsAggregator, StatusPropagator}

Related apps:
    - marketplace: Contract, Opportunity and Application models

Usage:
    from settlement.services import WebhookProcessor

    result = WebhookProcessor().process(event)
"""
