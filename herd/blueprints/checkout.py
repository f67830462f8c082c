"""Checkout blueprint — /api/checkout

Route Map:
  POST /api/checkout — open a Stripe Checkout Session, return { url }

Accepts JSON:
  { booking_id?, listing_id? | class_id?, num_attendees?, attendee_names?,
    success_url?, cancel_url? }

Returns: { url: "https://checkout.stripe.com/..." } or { error: "..." }
Failures are PaymentError subclasses rendered by the app-wide handler.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from herd.extensions import db, limiter
from herd.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api")


@checkout_bp.route("/checkout", methods=["POST"])
@limiter.limit("10 per minute")
def create_checkout():
    """Create a Checkout Session for a booking or a direct listing purchase."""
    data = request.get_json(silent=True) or {}

    user_id = current_user.id if current_user.is_authenticated else None

    service = CheckoutService(
        db.session,
        current_app.extensions["stripe_gateway"],
        app_base_url=current_app.config["APP_BASE_URL"],
    )
    url = service.create_checkout(
        user_id=user_id,
        booking_id=(data.get("booking_id") or None),
        listing_id=(data.get("listing_id") or data.get("class_id") or None),
        num_attendees=data.get("num_attendees"),
        attendee_names=data.get("attendee_names"),
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
    )
    return jsonify({"url": url}), 200
