"""Webhook service — idempotent processing of verified Stripe events.

Responsible for:
- Skipping events already in the stripe_events table
- Dispatching decoded events to booking transitions
- Recording the event ID as the last write of the same transaction

The event row and the booking transition commit together. If the
transition fails nothing is committed, so Stripe's retry can finish the
work; if a concurrent delivery of the same event commits first, our
insert hits the unique index and everything this delivery did is rolled
back.
"""

import logging
from collections import namedtuple

from herd.services.booking_ledger import BookingLedger
from herd.services.event_store import EventStore
from herd.services.webhook_events import (
    CheckoutCompleted,
    PaymentIntentSucceeded,
    decode_event,
)

logger = logging.getLogger(__name__)

# body: JSON-serialisable dict for the HTTP response; ok is always True
# here, failures are raised instead.
WebhookOutcome = namedtuple("WebhookOutcome", ["event_id", "body"])


class WebhookService:
    """Applies verified Stripe events to the booking ledger."""

    def __init__(self, session, ledger=None, event_store=None):
        self.session = session
        self.ledger = ledger or BookingLedger(session)
        self.event_store = event_store or EventStore(session)

    def handle(self, envelope):
        """Process a verified event envelope.

        Returns a WebhookOutcome. Raises MalformedEvent for envelopes that
        can never be processed, and lets any other exception propagate
        after rolling back so the caller answers 5xx.
        """
        event = decode_event(envelope)

        # --- Idempotency fast path ---
        if self.event_store.is_processed(event.event_id):
            logger.info(f"Duplicate webhook event {event.event_id}, skipping")
            return WebhookOutcome(event.event_id, {"ok": True, "idempotent": True})

        try:
            body = self._dispatch(event)

            # --- Record event for idempotency (last write) ---
            if not self.event_store.record(event.event_id, event.event_type):
                return WebhookOutcome(
                    event.event_id, {"ok": True, "idempotent": True}
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        return WebhookOutcome(event.event_id, body)

    # ──────────────────────────────────────────────
    # Event handlers
    # ──────────────────────────────────────────────

    def _dispatch(self, event):
        if isinstance(event, CheckoutCompleted):
            return self._handle_checkout_completed(event)
        if isinstance(event, PaymentIntentSucceeded):
            return self._handle_payment_intent_succeeded(event)
        logger.info(f"Ignoring webhook event {event.event_id} ({event.event_type})")
        return {"ok": True, "ignored": event.event_type}

    def _handle_checkout_completed(self, event):
        """checkout.session.completed: mark the booking paid.

        Stores both the session and payment intent IDs for audit.
        """
        if not event.booking_id:
            logger.info(
                f"checkout.session.completed {event.event_id} has no booking_id "
                f"(session {event.session_id}), nothing to update"
            )
            return {"ok": True, "note": "no booking_id"}

        return self._mark_paid(
            event,
            payment_intent_id=event.payment_intent_id,
            session_id=event.session_id,
        )

    def _handle_payment_intent_succeeded(self, event):
        """payment_intent.succeeded: fallback for flows without a session."""
        if not event.booking_id:
            logger.info(
                f"payment_intent.succeeded {event.event_id} has no booking_id "
                f"(intent {event.payment_intent_id}), nothing to update"
            )
            return {"ok": True, "note": "no booking_id on PI"}

        return self._mark_paid(event, payment_intent_id=event.payment_intent_id)

    def _mark_paid(self, event, payment_intent_id, session_id=None):
        result = self.ledger.mark_paid(
            event.booking_id,
            payment_intent_id=payment_intent_id,
            session_id=session_id,
            audit_metadata={
                "stripe_event_id": event.event_id,
                "stripe_event_type": event.event_type,
            },
        )
        if result is None:
            logger.warning(
                f"{event.event_type} {event.event_id}: no booking {event.booking_id} "
                f"(class {event.metadata.get('class_id') or 'unknown'})"
            )
            return {"ok": True, "note": "booking not found"}

        if result.changed:
            logger.info(
                f"Booking {result.booking_id}: {result.previous} -> {result.status} "
                f"({event.event_type} {event.event_id})"
            )
        return {"ok": True, "status": result.status}
