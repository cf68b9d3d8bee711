"""
Pytest fixtures for settlement tests.

The default scenario: a client posted an opportunity, a creator applied,
and a draft contract (total 100.00, payout 80.00, commission 20.00) waits
for payment pi_1.

Usage:
    def test_activation(draft_contract, orchestrator):
        orchestrator.settle(parse_event(payment_succeeded_payload("evt_1", "pi_1")))
"""

import pytest

from marketplace.states import ContractStatus
from marketplace.tests.factories import (
    ApplicationFactory,
    ContractFactory,
    OpportunityFactory,
    UserFactory,
)
from settlement.services import (
    EarningsAggregator,
    IdempotencyGuard,
    LedgerWriter,
    SettlementOrchestrator,
    StatusPropagator,
    WebhookProcessor,
)
from settlement.tests.factories import WEBHOOK_SECRET


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def settlement_settings(settings):
    """Deterministic settlement settings for every test."""
    settings.SETTLEMENT_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.SETTLEMENT_WEBHOOK_TOLERANCE_SECONDS = 300
    settings.SETTLEMENT_WEBHOOK_RETRY_AFTER_SECONDS = 30
    settings.SETTLEMENT_PROCESSING_LEASE_SECONDS = 120
    settings.SETTLEMENT_EARNINGS_MAX_RETRIES = 5
    settings.SETTLEMENT_EARNINGS_RETRY_BASE_DELAY = 0
    settings.SETTLEMENT_MAX_EVENT_RETRIES = 5
    return settings


# =============================================================================
# Marketplace Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    return UserFactory(username="client")


@pytest.fixture
def creator(db):
    return UserFactory(username="creator")


@pytest.fixture
def opportunity(db, client_user):
    return OpportunityFactory(posted_by=client_user)


@pytest.fixture
def application(db, opportunity, creator):
    """The creator's pending application to the opportunity."""
    return ApplicationFactory(opportunity=opportunity, creator=creator)


@pytest.fixture
def draft_contract(db, opportunity, creator, application):
    """Draft contract paid through pi_1."""
    return ContractFactory(
        opportunity=opportunity,
        creator=creator,
        total_amount=10000,
        creator_payout_amount=8000,
        commission_amount=2000,
        external_payment_ref="pi_1",
    )


@pytest.fixture
def active_contract(db, draft_contract):
    """The draft contract, activated by evt_paid."""
    draft_contract.activate(event_id="evt_paid")
    draft_contract.save()
    return draft_contract


@pytest.fixture
def cancelled_contract(db, draft_contract):
    draft_contract.status = ContractStatus.CANCELLED
    draft_contract.save()
    return draft_contract


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def sleeps():
    """Collects backoff delays instead of sleeping."""
    return []


@pytest.fixture
def earnings(sleeps):
    return EarningsAggregator(max_retries=5, base_delay=0.01, sleep=sleeps.append)


@pytest.fixture
def orchestrator(earnings):
    return SettlementOrchestrator(
        ledger=LedgerWriter(),
        earnings=earnings,
        propagator=StatusPropagator(),
    )


@pytest.fixture
def guard():
    return IdempotencyGuard(lease_seconds=120)


@pytest.fixture
def processor(guard, orchestrator):
    return WebhookProcessor(guard=guard, orchestrator=orchestrator)
