"""
Typed settlement events parsed from verified webhook payloads.

The processor sends `{id, type, data: {object}}`. parse_event() maps the
type string onto a closed set of frozen dataclasses so handlers work with
named fields instead of digging through nested dicts.

Variants:
    PaymentSucceeded: payment.succeeded / payment_intent.succeeded
    PaymentFailed: payment.failed / payment_intent.payment_failed
    ChargeRefunded: charge.refunded
    UnhandledEvent: any other type (acknowledged, no writes)

Usage:
    from settlement.events import parse_event

    event = parse_event(verified_data)
    if isinstance(event, PaymentSucceeded):
        contract = Contract.objects.by_external_ref(event.payment_ref)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from settlement.exceptions import InvalidEventError


@dataclass(frozen=True)
class SettlementEvent:
    """Fields every verified event carries."""

    event_id: str
    event_type: str
    payload: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class PaymentSucceeded(SettlementEvent):
    """The client's payment for a contract went through."""

    payment_ref: str = ""
    charge_ref: str | None = None
    opportunity_id: str | None = None
    creator_id: str | None = None
    client_id: str | None = None


@dataclass(frozen=True)
class PaymentFailed(SettlementEvent):
    """The client's payment for a contract was declined."""

    payment_ref: str = ""
    failure_reason: str = "Payment failed"
    opportunity_id: str | None = None
    creator_id: str | None = None


@dataclass(frozen=True)
class ChargeRefunded(SettlementEvent):
    """A previously captured charge was refunded."""

    charge_ref: str = ""
    payment_ref: str | None = None
    amount_refunded: int = 0


@dataclass(frozen=True)
class UnhandledEvent(SettlementEvent):
    """An event type the pipeline acknowledges without acting on."""


# =============================================================================
# Type Registry
# =============================================================================


EVENT_PARSERS: dict[str, Callable[[str, str, dict, dict], SettlementEvent]] = {}


def parses(*event_types: str) -> Callable:
    """
    Decorator to register a parser for one or more event type strings.

    Args:
        event_types: Processor event types handled by the decorated parser
    """

    def decorator(func: Callable[[str, str, dict, dict], SettlementEvent]) -> Callable:
        for event_type in event_types:
            EVENT_PARSERS[event_type] = func
        return func

    return decorator


def _require_object_id(event_id: str, event_type: str, obj: dict) -> str:
    object_id = obj.get("id")
    if not object_id or not isinstance(object_id, str):
        raise InvalidEventError(
            f"{event_type} event has no data.object.id",
            details={"event_id": event_id, "event_type": event_type},
        )
    return object_id


def _metadata(obj: dict) -> dict:
    metadata = obj.get("metadata") or {}
    return metadata if isinstance(metadata, dict) else {}


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@parses("payment.succeeded", "payment_intent.succeeded")
def _parse_payment_succeeded(event_id: str, event_type: str, obj: dict, payload: dict):
    metadata = _metadata(obj)
    latest_charge = obj.get("latest_charge")
    return PaymentSucceeded(
        event_id=event_id,
        event_type=event_type,
        payload=payload,
        payment_ref=_require_object_id(event_id, event_type, obj),
        # latest_charge is a plain id unless the sender expanded it
        charge_ref=latest_charge if isinstance(latest_charge, str) else None,
        opportunity_id=_optional_str(metadata.get("opportunityId")),
        creator_id=_optional_str(metadata.get("creatorId")),
        client_id=_optional_str(metadata.get("clientId")),
    )


@parses("payment.failed", "payment_intent.payment_failed")
def _parse_payment_failed(event_id: str, event_type: str, obj: dict, payload: dict):
    metadata = _metadata(obj)
    last_error = obj.get("last_payment_error") or {}
    reason = last_error.get("message") if isinstance(last_error, dict) else None
    return PaymentFailed(
        event_id=event_id,
        event_type=event_type,
        payload=payload,
        payment_ref=_require_object_id(event_id, event_type, obj),
        failure_reason=reason or "Payment failed",
        opportunity_id=_optional_str(metadata.get("opportunityId")),
        creator_id=_optional_str(metadata.get("creatorId")),
    )


@parses("charge.refunded")
def _parse_charge_refunded(event_id: str, event_type: str, obj: dict, payload: dict):
    amount_refunded = obj.get("amount_refunded") or 0
    return ChargeRefunded(
        event_id=event_id,
        event_type=event_type,
        payload=payload,
        charge_ref=_require_object_id(event_id, event_type, obj),
        payment_ref=_optional_str(obj.get("payment_intent")),
        amount_refunded=amount_refunded if isinstance(amount_refunded, int) else 0,
    )


def parse_event(data: dict) -> SettlementEvent:
    """
    Turn a verified webhook body into a typed event.

    Args:
        data: Decoded JSON body, already signature-checked

    Returns:
        One of PaymentSucceeded, PaymentFailed, ChargeRefunded, UnhandledEvent

    Raises:
        InvalidEventError: id/type missing, or a known type without the
            object id it is keyed on
    """
    if not isinstance(data, dict):
        raise InvalidEventError("Event body must be a JSON object")

    event_id = data.get("id")
    event_type = data.get("type")
    if not event_id or not isinstance(event_id, str):
        raise InvalidEventError("Event has no id")
    if not event_type or not isinstance(event_type, str):
        raise InvalidEventError("Event has no type", details={"event_id": event_id})

    parser = EVENT_PARSERS.get(event_type)
    if parser is None:
        return UnhandledEvent(event_id=event_id, event_type=event_type, payload=data)

    event_data = data.get("data") or {}
    obj = event_data.get("object") if isinstance(event_data, dict) else None
    if not isinstance(obj, dict):
        raise InvalidEventError(
            f"{event_type} event has no data.object",
            details={"event_id": event_id, "event_type": event_type},
        )

    return parser(event_id, event_type, obj, data)


__all__ = [
    "ChargeRefunded",
    "EVENT_PARSERS",
    "PaymentFailed",
    "PaymentSucceeded",
    "SettlementEvent",
    "UnhandledEvent",
    "parse_event",
]
