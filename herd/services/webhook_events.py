"""Decoding of verified Stripe webhook envelopes.

A verified envelope is turned into one of a closed set of event kinds:

    CheckoutCompleted        checkout.session.completed
    PaymentIntentSucceeded   payment_intent.succeeded
    IgnoredEvent             anything else (acknowledged, no state change)

Our identifiers are only ever read from metadata, never from line items.
A missing booking_id is not an error: the session was created outside the
booking flow and decodes with booking_id=None.
"""

from collections import namedtuple

from herd.errors import InvalidInput

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"

CheckoutCompleted = namedtuple(
    "CheckoutCompleted",
    ["event_id", "event_type", "booking_id", "session_id",
     "payment_intent_id", "metadata"],
)
PaymentIntentSucceeded = namedtuple(
    "PaymentIntentSucceeded",
    ["event_id", "event_type", "booking_id", "payment_intent_id", "metadata"],
)
IgnoredEvent = namedtuple("IgnoredEvent", ["event_id", "event_type"])


class MalformedEvent(InvalidInput):
    message = "Malformed event"


def _require_str(value, field):
    if not isinstance(value, str) or not value.strip():
        raise MalformedEvent(f"Malformed event: missing {field}")
    return value.strip()


def _data_object(envelope):
    data = envelope.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise MalformedEvent("Malformed event: missing data.object")
    return obj


def _metadata(obj):
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise MalformedEvent("Malformed event: metadata is not an object")
    return {str(k): "" if v is None else str(v) for k, v in metadata.items()}


def _booking_id(metadata):
    return metadata.get("booking_id", "").strip() or None


def _payment_intent_id(value):
    """payment_intent is an ID string, or an object when expanded."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def decode_event(envelope):
    """Decode a verified Stripe event envelope into an event kind.

    Raises MalformedEvent if the envelope lacks an id or type, or if a
    known kind lacks the fields it needs.
    """
    if not isinstance(envelope, dict):
        raise MalformedEvent("Malformed event: envelope is not an object")

    event_id = _require_str(envelope.get("id"), "id")
    event_type = _require_str(envelope.get("type"), "type")

    if event_type == CHECKOUT_COMPLETED:
        session = _data_object(envelope)
        metadata = _metadata(session)
        return CheckoutCompleted(
            event_id=event_id,
            event_type=event_type,
            booking_id=_booking_id(metadata),
            session_id=_require_str(session.get("id"), "data.object.id"),
            payment_intent_id=_payment_intent_id(session.get("payment_intent")),
            metadata=metadata,
        )

    if event_type == PAYMENT_INTENT_SUCCEEDED:
        intent = _data_object(envelope)
        metadata = _metadata(intent)
        return PaymentIntentSucceeded(
            event_id=event_id,
            event_type=event_type,
            booking_id=_booking_id(metadata),
            payment_intent_id=_require_str(intent.get("id"), "data.object.id"),
            metadata=metadata,
        )

    return IgnoredEvent(event_id=event_id, event_type=event_type)
