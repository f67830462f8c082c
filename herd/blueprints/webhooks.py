"""Webhooks blueprint — /stripe/webhooks

Receives Stripe webhook events. CSRF-exempt.
Raw body is required for signature verification.

Status codes follow Stripe's retry semantics:
    200  handled, duplicate, or safely ignored (no retry)
    400  bad signature or malformed envelope (no retry)
    500  processing failed (Stripe retries)
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from herd.errors import InvalidInput, SignatureInvalid
from herd.extensions import db
from herd.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to WebhookService (idempotent via stripe_events table)
    4. Return 200 to acknowledge receipt, 500 to ask for a retry

    CSRF is exempted for this blueprint in create_app().
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")
    gateway = current_app.extensions["stripe_gateway"]

    # --- Verify signature ---
    try:
        envelope = gateway.verify_webhook(payload, sig_header)
    except SignatureInvalid as e:
        logger.warning(
            f"Webhook signature verification failed from {request.remote_addr}: {e}"
        )
        return jsonify({"ok": False, "error": "Invalid signature"}), 400
    except InvalidInput as e:
        logger.warning(f"Webhook body rejected: {e}")
        return jsonify({"ok": False, "error": e.message}), 400

    # --- Process event (idempotent) ---
    try:
        outcome = WebhookService(db.session).handle(envelope)
    except InvalidInput as e:
        logger.warning(f"Webhook event rejected: {e}")
        return jsonify({"ok": False, "error": e.message}), 400
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return jsonify({"ok": False, "error": "server error"}), 500

    return jsonify(outcome.body), 200
