"""Shared test fixtures for the payment-core test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: guest + host users, a $25 listing, bookings in each status
- login: log a user in on the test client
- post_event: sign a Stripe event with the test webhook secret and POST it
"""

import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest

from herd import create_app
from herd.extensions import db as _db
from herd.models.booking import Booking
from herd.models.listing import Listing
from herd.models.user import User

WEBHOOK_SECRET = "whsec_test_fake"


def sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_id, event_type, obj):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def checkout_completed(event_id, booking_id=None, session_id="cs_test_1",
                       payment_intent="pi_test_1"):
    metadata = {"class_id": "cls", "user_id": "usr"}
    if booking_id is not None:
        metadata["booking_id"] = booking_id
    return make_event(event_id, "checkout.session.completed", {
        "id": session_id,
        "object": "checkout.session",
        "payment_intent": payment_intent,
        "payment_status": "paid",
        "metadata": metadata,
    })


def payment_intent_succeeded(event_id, booking_id=None, payment_intent="pi_test_1"):
    metadata = {}
    if booking_id is not None:
        metadata["booking_id"] = booking_id
    return make_event(event_id, "payment_intent.succeeded", {
        "id": payment_intent,
        "object": "payment_intent",
        "metadata": metadata,
    })


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def login(client):
    """Return a function that logs a user ID into the test client session."""

    def _login(user_id):
        with client.session_transaction() as sess:
            sess["_user_id"] = user_id
            sess["_fresh"] = True

    return _login


@pytest.fixture
def post_event(client):
    """Return a function that signs and POSTs an event to /stripe/webhooks."""

    def _post(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event)
        headers = {"Stripe-Signature": signature or sign_payload(payload, secret)}
        return client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers=headers,
        )

    return _post


@pytest.fixture
def seed_data(app, db_session):
    """Seed users, a listing, and one booking per pre-payment status.

    Returns plain IDs so tests can use them across app contexts.
    """
    with app.app_context():
        guest = User(email="guest@herd.test", full_name="Guest User")
        host = User(email="host@herd.test", full_name="Host User")
        _db.session.add_all([guest, host])
        _db.session.flush()

        listing = Listing(
            host_id=host.id,
            title="Goat Yoga",
            price_per_person=Decimal("25.00"),
        )
        free_listing = Listing(
            host_id=host.id,
            title="Free Meetup",
            price_per_person=Decimal("0.00"),
        )
        _db.session.add_all([listing, free_listing])
        _db.session.flush()

        def booking(status, num_attendees=2):
            b = Booking(
                class_id=listing.id,
                user_id=guest.id,
                num_attendees=num_attendees,
                total_price=Decimal("50.00"),
                total_amount=5000,
                status=status,
            )
            _db.session.add(b)
            return b

        approved = booking("approved")
        pending = booking("pending")
        declined = booking("declined")
        _db.session.commit()

        return {
            "guest_id": guest.id,
            "host_id": host.id,
            "listing_id": listing.id,
            "free_listing_id": free_listing.id,
            "approved_id": approved.id,
            "pending_id": pending.id,
            "declined_id": declined.id,
        }
