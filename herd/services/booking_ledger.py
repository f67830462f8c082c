"""Booking ledger — authoritative booking rows and their payment transitions.

Responsible for:
- Creating direct ("pay now") bookings for checkout
- Applying the payment-success transition with optimistic concurrency
- Read-only payment status lookups

No row is ever locked. mark_paid() reads the current status, computes the
next one and writes it with UPDATE ... WHERE id = :id AND status = :observed.
If another writer changed the status in between, the update matches zero
rows and the cycle runs once more before giving up with
TransientStorageFailure, leaving the retry to Stripe's redelivery.
"""

import logging
from collections import namedtuple
from datetime import datetime, timezone
from decimal import Decimal

from herd.errors import NotFound, TransientStorageFailure
from herd.models.audit import AuditEvent
from herd.models.booking import Booking
from herd.services.booking_status import APPROVED, is_paid, next_status_on_payment

logger = logging.getLogger(__name__)

# previous: status observed before the write; status: status after it;
# changed: False when the booking was already in a paid state.
TransitionResult = namedtuple(
    "TransitionResult", ["booking_id", "previous", "status", "changed"]
)


class BookingLedger:
    """Booking reads and writes bound to a SQLAlchemy session.

    Writes are flushed, never committed: the caller owns the transaction
    boundary so a webhook can commit the transition together with its
    processed-event record.
    """

    # One read-compute-write, plus one immediate retry.
    MAX_ATTEMPTS = 2

    def __init__(self, session):
        self.session = session

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    def get(self, booking_id):
        """Return the Booking or raise NotFound."""
        booking = self.session.get(Booking, booking_id) if booking_id else None
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def payment_status(self, booking_id):
        """Current status and paid timestamp for display after redirect-back."""
        row = (
            self.session.query(Booking.id, Booking.status, Booking.paid_at)
            .filter(Booking.id == booking_id)
            .first()
        )
        if row is None:
            raise NotFound("Booking not found")
        return {
            "booking_id": row.id,
            "status": row.status,
            "paid": is_paid(row.status),
            "paid_at": row.paid_at.isoformat() if row.paid_at else None,
        }

    def _read_status(self, booking_id):
        return (
            self.session.query(Booking.status)
            .filter(Booking.id == booking_id)
            .scalar()
        )

    # ──────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────

    def create_direct_booking(self, listing_id, user_id, num_attendees,
                              unit_amount, attendee_names=None):
        """Insert an already-approved booking for the "pay now" path.

        unit_amount is in minor units; totals are computed once, here.
        """
        total_amount = unit_amount * num_attendees
        booking = Booking(
            class_id=listing_id,
            user_id=user_id,
            status=APPROVED,
            num_attendees=num_attendees,
            attendee_names=attendee_names or None,
            total_amount=total_amount,
            total_price=Decimal(total_amount) / 100,
        )
        self.session.add(booking)
        self.session.flush()

        self.session.add(AuditEvent(
            booking_id=booking.id,
            actor_user_id=user_id,
            action="booking.created_direct",
            metadata_={
                "class_id": listing_id,
                "num_attendees": num_attendees,
                "total_amount": total_amount,
            },
        ))
        self.session.flush()
        return booking

    def attach_checkout_session(self, booking_id, stripe_session_id):
        """Store the Stripe Checkout Session ID on the booking."""
        self.session.query(Booking).filter(Booking.id == booking_id).update(
            {"stripe_session_id": stripe_session_id},
            synchronize_session=False,
        )
        self.session.flush()

    def mark_paid(self, booking_id, payment_intent_id=None, session_id=None,
                  audit_metadata=None):
        """Apply the payment-success transition to a booking.

        Returns a TransitionResult, or None if no booking has this ID.
        Raises TransientStorageFailure if the conditional update keeps
        losing to concurrent writers.
        """
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            current = self._read_status(booking_id)
            if current is None:
                return None

            next_status = next_status_on_payment(current)
            if next_status == current:
                # Already paid: keep status and paid_at, only fill in
                # references an earlier event did not carry.
                self._backfill_references(booking_id, payment_intent_id, session_id)
                return TransitionResult(booking_id, current, current, False)

            values = {
                "status": next_status,
                "paid_at": datetime.now(timezone.utc),
            }
            if payment_intent_id:
                values["stripe_payment_intent"] = payment_intent_id
            if session_id:
                values["stripe_session_id"] = session_id

            matched = (
                self.session.query(Booking)
                .filter(Booking.id == booking_id, Booking.status == current)
                .update(values, synchronize_session=False)
            )
            if matched == 1:
                self.session.add(AuditEvent(
                    booking_id=booking_id,
                    actor_user_id=None,
                    action=f"booking.{next_status}",
                    metadata_=dict(
                        audit_metadata or {},
                        previous_status=current,
                        stripe_payment_intent=payment_intent_id,
                        stripe_session_id=session_id,
                    ),
                ))
                self.session.flush()
                # Objects already loaded in this session hold the old status.
                self.session.expire_all()
                return TransitionResult(booking_id, current, next_status, True)

            logger.warning(
                f"Booking {booking_id} changed from {current} during payment "
                f"transition (attempt {attempt}/{self.MAX_ATTEMPTS})"
            )

        raise TransientStorageFailure(
            f"Booking {booking_id} status kept changing during payment transition"
        )

    def _backfill_references(self, booking_id, payment_intent_id, session_id):
        if payment_intent_id:
            self.session.query(Booking).filter(
                Booking.id == booking_id,
                Booking.stripe_payment_intent.is_(None),
            ).update(
                {"stripe_payment_intent": payment_intent_id},
                synchronize_session=False,
            )
        if session_id:
            self.session.query(Booking).filter(
                Booking.id == booking_id,
                Booking.stripe_session_id.is_(None),
            ).update(
                {"stripe_session_id": session_id},
                synchronize_session=False,
            )
        self.session.flush()
