"""Bookings blueprint — /api/bookings/*

Read-only payment status, polled by the front end after the redirect back
from Stripe Checkout.

Route Map:
  GET /api/bookings/<booking_id>/payment-status
"""

from flask import Blueprint, jsonify

from herd.extensions import db
from herd.services.booking_ledger import BookingLedger

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


@bookings_bp.route("/<booking_id>/payment-status")
def payment_status(booking_id):
    """{ booking_id, status, paid, paid_at } or 404."""
    return jsonify(BookingLedger(db.session).payment_status(booking_id)), 200
