"""
Settlement-specific exceptions.

Exception Hierarchy:
    SettlementError (base for settlement domain)
    ├── WebhookVerificationError - Bad signature, stale timestamp (terminal, 400)
    ├── InvalidEventError - Verified body that is not a usable event (terminal, 400)
    └── SettlementNotFoundError - Stored event row missing (background paths)

    StaleRecordError - Optimistic locking retries exhausted (inherits ConflictError)
    TransientSettlementError - Store timeout/connection failure (inherits ExternalServiceError)

Only terminal errors are answered with 400. Anything transient is answered
with 503 so the processor redelivers; every settlement step is idempotent,
so redelivery is safe.

Expected anomalies (unknown contract, invalid transition, duplicate event)
are NOT exceptions. Handlers return them as SettlementOutcome values and
the event is acknowledged.

Usage:
    from settlement.exceptions import WebhookVerificationError

    try:
        event_data = verifier.verify(request.body, signature)
    except WebhookVerificationError as e:
        return JsonResponse(e.to_dict(), status=400)
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
)


# =============================================================================
# Settlement Domain Exceptions
# =============================================================================


class SettlementError(BaseApplicationError):
    """
    Base exception for settlement operations.
    """

    default_error_code: str = "SETTLEMENT_ERROR"
    is_retryable: bool = False


class WebhookVerificationError(SettlementError):
    """
    Raised when an inbound webhook cannot be authenticated.

    Covers a missing signature header, a missing configured secret, a
    signature mismatch and a timestamp outside the freshness window.
    This is a permanent error: the sender must not redeliver a forged or
    replayed request.
    """

    default_error_code: str = "WEBHOOK_VERIFICATION_FAILED"


class InvalidEventError(SettlementError):
    """
    Raised when a verified webhook body is not a usable event.

    Examples: body is not JSON, `id` or `type` missing, or a known event
    type whose `data.object` lacks the processor identifier we key on.
    """

    default_error_code: str = "INVALID_EVENT"


class SettlementNotFoundError(SettlementError):
    """
    Raised when a stored settlement row a caller asked for does not exist.

    Used by the background reprocessing path, which looks events up by
    primary key. Webhook handlers report missing contracts as outcomes.
    """

    default_error_code: str = "SETTLEMENT_NOT_FOUND"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when an optimistic write keeps losing to concurrent writers.

    The EarningsAggregator retries its conditioned update with backoff;
    this surfaces only once retries are exhausted. Treated as transient.
    """

    default_error_code: str = "STALE_RECORD"
    is_retryable: bool = True


class TransientSettlementError(ExternalServiceError):
    """
    Raised when a settlement step fails for a reason that may go away.

    Wraps database timeouts, dropped connections and exhausted optimistic
    retries. The webhook view answers 503 so the processor redelivers.
    """

    default_error_code: str = "SETTLEMENT_TRANSIENT_FAILURE"
    is_retryable: bool = True


__all__ = [
    "SettlementError",
    "WebhookVerificationError",
    "InvalidEventError",
    "SettlementNotFoundError",
    "StaleRecordError",
    "TransientSettlementError",
]
