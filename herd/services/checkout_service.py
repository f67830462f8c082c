"""Checkout service — opens Stripe Checkout Sessions for bookings.

Two entry paths:
- booking_id given: pay for an existing (usually host-approved) booking.
  The unit price is re-read from the listing at checkout time, so a price
  change between request and payment is charged at the new price.
- listing_id only: "pay now" direct booking. Requires a signed-in user and
  creates a new booking in status approved.

Price validation happens before any row is written or any Stripe call is
made. The new booking and the session ID are committed together, only
after Stripe has returned a session.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from herd.errors import InvalidInput, InvalidPrice, NotFound, Unauthenticated
from herd.models.listing import Listing
from herd.services.booking_ledger import BookingLedger

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Class booking"


def parse_quantity(value, default=1):
    """Attendee count from untrusted input: non-numeric -> default, floor 1."""
    try:
        qty = int(Decimal(str(value))) if value not in (None, "") else default
    except (InvalidOperation, ValueError, OverflowError):
        qty = default
    return max(1, qty)


def to_minor_units(price):
    """Convert a major-unit price (e.g. 25.5) to integer cents, half up."""
    if price is None:
        return 0
    try:
        amount = Decimal(str(price)) * 100
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


class CheckoutService:
    """Creates bookings (when needed) and their Stripe Checkout Sessions."""

    def __init__(self, session, gateway, app_base_url, ledger=None):
        self.session = session
        self.gateway = gateway
        self.app_base_url = app_base_url.rstrip("/")
        self.ledger = ledger or BookingLedger(session)

    def create_checkout(self, user_id=None, booking_id=None, listing_id=None,
                        num_attendees=None, attendee_names=None,
                        success_url=None, cancel_url=None):
        """Open a Checkout Session and return its redirect URL.

        Raises InvalidInput, InvalidPrice, NotFound, Unauthenticated, or
        PaymentProcessorError. Nothing is committed when it raises.
        """
        if not booking_id and not listing_id:
            raise InvalidInput("Provide booking_id or class_id")

        qty = parse_quantity(num_attendees)

        try:
            if booking_id:
                booking = self.ledger.get(booking_id)
                listing = booking.listing
                listing_id = booking.class_id
                qty = parse_quantity(booking.num_attendees, default=qty)
                unit_amount = self._unit_amount(listing)
            else:
                if not user_id:
                    raise Unauthenticated()
                listing = self.session.get(Listing, listing_id)
                if listing is None:
                    raise NotFound("Class not found")
                unit_amount = self._unit_amount(listing)
                booking = self.ledger.create_direct_booking(
                    listing_id=listing.id,
                    user_id=user_id,
                    num_attendees=qty,
                    unit_amount=unit_amount,
                    attendee_names=attendee_names,
                )

            metadata = {
                "booking_id": booking.id,
                "class_id": listing_id or "",
                "user_id": booking.user_id or user_id or "",
            }

            checkout_session = self.gateway.create_checkout_session(
                unit_amount=unit_amount,
                quantity=qty,
                product_name=(listing.title if listing else None) or DEFAULT_TITLE,
                success_url=success_url or f"{self.app_base_url}/class/{listing_id}?success=1",
                cancel_url=cancel_url or f"{self.app_base_url}/class/{listing_id}?canceled=1",
                metadata=metadata,
                client_reference_id=booking.id,
            )

            self.ledger.attach_checkout_session(booking.id, checkout_session.id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            f"Checkout session {checkout_session.id} opened for booking {metadata['booking_id']} "
            f"({qty} x {unit_amount})"
        )
        return checkout_session.url

    @staticmethod
    def _unit_amount(listing):
        """Current per-person price in cents. A zero/missing price is refused."""
        unit_amount = to_minor_units(listing.price_per_person if listing else None)
        if unit_amount < 1:
            raise InvalidPrice()
        return unit_amount
