"""Event store — durable log of processed Stripe event IDs.

Presence of a stripe_events row is the only idempotency signal for the
webhook pipeline. Recording is an INSERT against the unique index, never a
read-then-write, so two concurrent deliveries of the same event cannot
both win.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from herd.models.stripe_event import StripeEvent

logger = logging.getLogger(__name__)


class EventStore:
    """Processed-event log bound to a SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    def is_processed(self, event_id):
        """Fast-path duplicate check. Not a substitute for record()."""
        return (
            self.session.query(StripeEvent.id)
            .filter_by(stripe_event_id=event_id)
            .first()
            is not None
        )

    def record(self, event_id, event_type):
        """Insert the event ID inside the caller's transaction.

        Returns True if this call inserted the row. Returns False if the
        unique constraint shows another delivery already recorded it; the
        whole transaction is then rolled back, discarding any side effects
        this delivery applied before calling record().
        """
        self.session.add(StripeEvent(
            stripe_event_id=event_id,
            event_type=event_type,
        ))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.info(f"Event {event_id} already recorded by a concurrent delivery")
            return False
        return True

    def purge_older_than(self, days):
        """Delete records older than the retention window. Returns the count."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = (
            self.session.query(StripeEvent)
            .filter(StripeEvent.processed_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted
