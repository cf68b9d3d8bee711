"""
Webhook endpoint view for processor payment events.

The view settles the event inline:
1. Verifies the signature (400 on failure, logged as a security event)
2. Parses the body into a typed event (400 if unusable)
3. Runs it through the idempotency guard and the orchestrator
4. Acknowledges with 200, or answers 503 so the processor redelivers

Usage:
    # In urls.py
    from settlement.webhooks.views import payment_webhook

    urlpatterns = [
        path("webhooks/stripe/", payment_webhook, name="payment_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from settlement.events import parse_event
from settlement.exceptions import (
    InvalidEventError,
    TransientSettlementError,
    WebhookVerificationError,
)
from settlement.services import WebhookProcessor
from settlement.types import AckStatus
from settlement.verification import WebhookVerifier


logger = logging.getLogger(__name__)
security_logger = logging.getLogger("settlement.security")


def _retry_later(body: dict) -> JsonResponse:
    response = JsonResponse(body, status=503)
    response["Retry-After"] = str(settings.SETTLEMENT_WEBHOOK_RETRY_AFTER_SECONDS)
    return response


@csrf_exempt
@require_POST
def payment_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive, verify and settle a processor webhook.

    Security:
    - Signature and timestamp verified before the body is trusted
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - The guard keys on the processor event id
    - Replays of an applied event return 200 without doing work
    - A replay that arrives while the first delivery is still running
      gets 503, so the processor retries instead of double-applying

    Returns:
        JsonResponse with status:
        - 200: Processed, already applied, or anomaly acknowledged
        - 400: Verification failure or unusable event
        - 503: In progress elsewhere, or transient failure
        - 500: Unexpected failure

    Example Stripe-Signature header:
        t=1614556800,v1=xxx
    """
    signature = request.headers.get("Stripe-Signature", "")

    try:
        event_data = WebhookVerifier().verify(request.body, signature)
    except WebhookVerificationError as e:
        security_logger.warning(
            f"Webhook verification failed: {e.message}",
            extra={
                "error_code": e.error_code,
                "remote_addr": request.META.get("REMOTE_ADDR"),
            },
        )
        return JsonResponse(e.to_dict(), status=400)
    except InvalidEventError as e:
        logger.warning(
            f"Invalid webhook body: {e.message}",
            extra={"error_code": e.error_code},
        )
        return JsonResponse(e.to_dict(), status=400)

    try:
        event = parse_event(event_data)
    except InvalidEventError as e:
        logger.warning(
            f"Invalid webhook event: {e.message}",
            extra={"error_code": e.error_code, **e.details},
        )
        return JsonResponse(e.to_dict(), status=400)

    logger.info(
        f"Received webhook: {event.event_type}",
        extra={"event_id": event.event_id, "event_type": event.event_type},
    )

    try:
        result = WebhookProcessor().process(event)
    except TransientSettlementError as e:
        logger.warning(
            f"Transient failure settling {event.event_id}, asking for redelivery",
            extra={"event_id": event.event_id, "error": str(e.__cause__ or e)},
        )
        return _retry_later({"received": False, **e.to_dict()})
    except Exception:
        logger.exception(
            "Webhook processing failed with exception",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        return JsonResponse(
            {"received": False, "error": "Internal error", "error_code": "INTERNAL_ERROR"},
            status=500,
        )

    if result.ack == AckStatus.IN_PROGRESS:
        return _retry_later(result.to_response())

    return JsonResponse(result.to_response(), status=200)
