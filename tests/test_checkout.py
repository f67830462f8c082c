"""Tests for the checkout blueprint and CheckoutService.

Covers:
- Existing booking: session uses the current listing price
- Direct ("pay now") booking: creates an approved booking, needs sign-in
- Invalid price: 400, no booking, no Stripe call
- Missing references / unknown booking or listing
- Stripe failure: 502, no booking left behind
- Metadata on both the session and its PaymentIntent
- Quantity parsing and minor-unit conversion
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from herd.extensions import db
from herd.models.audit import AuditEvent
from herd.models.booking import Booking
from herd.models.listing import Listing
from herd.services.checkout_service import parse_quantity, to_minor_units

SESSION_CREATE = "herd.services.stripe_gateway.stripe.checkout.Session.create"


def _fake_session(session_id="cs_test_new"):
    session = MagicMock()
    session.id = session_id
    session.url = f"https://checkout.stripe.com/c/pay/{session_id}"
    return session


class TestCheckoutExistingBooking:

    @patch(SESSION_CREATE)
    def test_uses_current_listing_price(self, mock_create, client, seed_data, app):
        """Price raised after the booking was made -> new price is charged."""
        mock_create.return_value = _fake_session()
        with app.app_context():
            listing = db.session.get(Listing, seed_data["listing_id"])
            listing.price_per_person = Decimal("30.00")
            db.session.commit()

        resp = client.post("/api/checkout", json={"booking_id": seed_data["approved_id"]})
        assert resp.status_code == 200
        assert resp.get_json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_new"}

        kwargs = mock_create.call_args.kwargs
        line_item = kwargs["line_items"][0]
        assert line_item["price_data"]["unit_amount"] == 3000
        assert line_item["price_data"]["currency"] == "usd"
        assert line_item["price_data"]["product_data"]["name"] == "Goat Yoga"
        # Booking's own attendee count wins over the request body
        assert line_item["quantity"] == 2
        assert kwargs["mode"] == "payment"
        assert kwargs["api_key"] == "sk_test_fake"
        assert kwargs["client_reference_id"] == seed_data["approved_id"]

        with app.app_context():
            booking = db.session.get(Booking, seed_data["approved_id"])
            assert booking.stripe_session_id == "cs_test_new"
            assert booking.status == "approved"

    @patch(SESSION_CREATE)
    def test_metadata_on_session_and_payment_intent(self, mock_create, client, seed_data):
        mock_create.return_value = _fake_session()

        client.post("/api/checkout", json={"booking_id": seed_data["approved_id"]})

        kwargs = mock_create.call_args.kwargs
        assert kwargs["metadata"]["booking_id"] == seed_data["approved_id"]
        assert kwargs["metadata"]["class_id"] == seed_data["listing_id"]
        assert kwargs["payment_intent_data"]["metadata"] == kwargs["metadata"]

    @patch(SESSION_CREATE)
    def test_default_redirect_urls(self, mock_create, client, seed_data):
        mock_create.return_value = _fake_session()

        client.post("/api/checkout", json={"booking_id": seed_data["approved_id"]})

        kwargs = mock_create.call_args.kwargs
        base = f"http://localhost:5000/class/{seed_data['listing_id']}"
        assert kwargs["success_url"] == f"{base}?success=1"
        assert kwargs["cancel_url"] == f"{base}?canceled=1"

    @patch(SESSION_CREATE)
    def test_caller_redirect_urls(self, mock_create, client, seed_data):
        mock_create.return_value = _fake_session()

        client.post("/api/checkout", json={
            "booking_id": seed_data["approved_id"],
            "success_url": "https://herd.rent/thanks",
            "cancel_url": "https://herd.rent/sorry",
        })

        kwargs = mock_create.call_args.kwargs
        assert kwargs["success_url"] == "https://herd.rent/thanks"
        assert kwargs["cancel_url"] == "https://herd.rent/sorry"

    @patch(SESSION_CREATE)
    def test_unknown_booking_returns_404(self, mock_create, client, seed_data):
        resp = client.post("/api/checkout", json={"booking_id": "no-such-booking"})
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Booking not found"}
        mock_create.assert_not_called()

    @patch(SESSION_CREATE)
    def test_zero_price_returns_400(self, mock_create, client, seed_data, app):
        with app.app_context():
            listing = db.session.get(Listing, seed_data["listing_id"])
            listing.price_per_person = Decimal("0.00")
            db.session.commit()

        resp = client.post("/api/checkout", json={"booking_id": seed_data["approved_id"]})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid price for class/booking"}
        mock_create.assert_not_called()


class TestCheckoutDirectBooking:

    @patch(SESSION_CREATE)
    def test_creates_approved_booking(self, mock_create, client, seed_data, login, app):
        mock_create.return_value = _fake_session("cs_direct")
        login(seed_data["guest_id"])

        resp = client.post("/api/checkout", json={
            "class_id": seed_data["listing_id"],
            "num_attendees": 3,
            "attendee_names": "Ann, Bo, Cy",
        })
        assert resp.status_code == 200

        with app.app_context():
            booking = Booking.query.filter_by(stripe_session_id="cs_direct").one()
            assert booking.status == "approved"
            assert booking.user_id == seed_data["guest_id"]
            assert booking.num_attendees == 3
            assert booking.total_amount == 7500
            assert booking.total_price == Decimal("75.00")
            assert booking.attendee_names == "Ann, Bo, Cy"
            assert AuditEvent.query.filter_by(
                booking_id=booking.id, action="booking.created_direct"
            ).count() == 1

            kwargs = mock_create.call_args.kwargs
            assert kwargs["metadata"]["booking_id"] == booking.id
            assert kwargs["metadata"]["user_id"] == seed_data["guest_id"]
            assert kwargs["line_items"][0]["quantity"] == 3

    @patch(SESSION_CREATE)
    def test_listing_id_alias(self, mock_create, client, seed_data, login):
        mock_create.return_value = _fake_session()
        login(seed_data["guest_id"])

        resp = client.post("/api/checkout", json={"listing_id": seed_data["listing_id"]})
        assert resp.status_code == 200
        assert mock_create.call_args.kwargs["line_items"][0]["quantity"] == 1

    @patch(SESSION_CREATE)
    def test_requires_sign_in(self, mock_create, client, seed_data, app):
        resp = client.post("/api/checkout", json={"class_id": seed_data["listing_id"]})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Not authenticated"}
        mock_create.assert_not_called()

        with app.app_context():
            assert Booking.query.count() == 3

    @patch(SESSION_CREATE)
    def test_unknown_listing_returns_404(self, mock_create, client, seed_data, login):
        login(seed_data["guest_id"])
        resp = client.post("/api/checkout", json={"class_id": "no-such-class"})
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Class not found"}

    @patch(SESSION_CREATE)
    def test_free_listing_rejected_without_side_effects(
        self, mock_create, client, seed_data, login, app
    ):
        login(seed_data["guest_id"])
        resp = client.post("/api/checkout", json={"class_id": seed_data["free_listing_id"]})
        assert resp.status_code == 400
        mock_create.assert_not_called()

        with app.app_context():
            assert Booking.query.filter_by(class_id=seed_data["free_listing_id"]).count() == 0

    @patch(SESSION_CREATE)
    def test_stripe_failure_returns_502_and_no_booking(
        self, mock_create, client, seed_data, login, app
    ):
        mock_create.side_effect = stripe.APIConnectionError("network down")
        login(seed_data["guest_id"])

        resp = client.post("/api/checkout", json={"class_id": seed_data["listing_id"]})
        assert resp.status_code == 502
        assert "error" in resp.get_json()

        with app.app_context():
            assert Booking.query.count() == 3
            assert AuditEvent.query.count() == 0


class TestCheckoutValidation:

    def test_missing_references_returns_400(self, client, seed_data):
        resp = client.post("/api/checkout", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Provide booking_id or class_id"}

    def test_non_json_body_returns_400(self, client, seed_data):
        resp = client.post("/api/checkout", data="booking_id=1")
        assert resp.status_code == 400


class TestHelpers:

    @pytest.mark.parametrize("value, expected", [
        (None, 1),
        ("", 1),
        ("abc", 1),
        (0, 1),
        (-4, 1),
        ("3", 3),
        (2.9, 2),
        (5, 5),
    ])
    def test_parse_quantity(self, value, expected):
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("price, cents", [
        (None, 0),
        (Decimal("25.00"), 2500),
        (Decimal("25.005"), 2501),
        (19.99, 1999),
        ("0.004", 0),
        ("not a price", 0),
    ])
    def test_to_minor_units(self, price, cents):
        assert to_minor_units(price) == cents


class TestCheckoutRequester:

    @patch(SESSION_CREATE)
    def test_anonymous_payer_sends_booking_requester(self, mock_create, client, seed_data):
        """Paying someone's booking without a session still tags the requester."""
        mock_create.return_value = _fake_session()

        resp = client.post("/api/checkout", json={"booking_id": seed_data["approved_id"]})
        assert resp.status_code == 200

        metadata = mock_create.call_args.kwargs["metadata"]
        assert metadata["user_id"] == seed_data["guest_id"]
        assert mock_create.call_args.kwargs["payment_intent_data"]["metadata"] == metadata
