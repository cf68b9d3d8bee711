"""
Webhook signature verification.

Authenticates inbound processor deliveries before anything else looks at
them. The processor signs `<timestamp>.<raw body>` with HMAC-SHA256 and
sends `Stripe-Signature: t=<timestamp>,v1=<hex digest>`; the stripe
library checks the digest and rejects timestamps older than the
tolerance window. Timestamps too far in the future are rejected here.

The verifier has no side effects. It never touches the database.

Usage:
    from settlement.verification import WebhookVerifier

    event_data = WebhookVerifier().verify(request.body, signature)
"""

from __future__ import annotations

import json
import logging
import time

from django.conf import settings

import stripe

from settlement.exceptions import InvalidEventError, WebhookVerificationError


logger = logging.getLogger(__name__)


class WebhookVerifier:
    """
    Verify processor webhook signatures and decode the body.

    Args:
        secret: Signing secret (defaults to SETTLEMENT_WEBHOOK_SECRET)
        tolerance: Freshness window in seconds
            (defaults to SETTLEMENT_WEBHOOK_TOLERANCE_SECONDS)
    """

    def __init__(self, secret: str | None = None, tolerance: int | None = None):
        self.secret = secret if secret is not None else settings.SETTLEMENT_WEBHOOK_SECRET
        self.tolerance = (
            tolerance
            if tolerance is not None
            else settings.SETTLEMENT_WEBHOOK_TOLERANCE_SECONDS
        )

    def verify(self, payload: bytes | str, signature: str | None) -> dict:
        """
        Authenticate a delivery and return its decoded body.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Returns:
            The decoded JSON body, guaranteed to carry `id` and `type`

        Raises:
            WebhookVerificationError: Secret not configured, header missing,
                signature mismatch, or timestamp outside the window
            InvalidEventError: Authentic body that is not a usable event
        """
        if not self.secret:
            # Fail closed: an unconfigured secret must not accept everything
            raise WebhookVerificationError(
                "Webhook signing secret is not configured",
                error_code="WEBHOOK_SECRET_MISSING",
            )

        if not signature:
            raise WebhookVerificationError(
                "Missing signature header",
                error_code="MISSING_SIGNATURE",
            )

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise WebhookVerificationError(
                    "Payload is not valid UTF-8",
                    details={"error": str(e)},
                ) from e

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature, self.secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(
                "Invalid webhook signature",
                details={"error": str(e)},
            ) from e

        self._check_not_from_future(signature)

        try:
            data = json.loads(payload)
        except ValueError as e:
            raise InvalidEventError(
                "Webhook body is not valid JSON",
                details={"error": str(e)},
            ) from e

        if not isinstance(data, dict) or not data.get("id") or not data.get("type"):
            raise InvalidEventError("Webhook body is missing id or type")

        return data

    def _check_not_from_future(self, signature: str) -> None:
        timestamp = None
        for item in signature.split(","):
            key, _, value = item.strip().partition("=")
            if key == "t":
                try:
                    timestamp = int(value)
                except ValueError:
                    timestamp = None
                break

        # verify_header already rejected headers without a usable timestamp
        if timestamp is None:
            return

        if self.tolerance and timestamp > time.time() + self.tolerance:
            raise WebhookVerificationError(
                "Webhook timestamp is in the future",
                error_code="TIMESTAMP_OUT_OF_RANGE",
                details={"timestamp": timestamp},
            )


__all__ = ["WebhookVerifier"]
