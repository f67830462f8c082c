"""Hosts blueprint — /api/hosts/*

Stripe Connect onboarding for hosts who want payouts.

Route Map:
  POST /api/hosts/onboard           — create account if needed, return { url }
  POST /api/hosts/onboard/finalize  — sync account flags, return { ok, flags }
"""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from herd.extensions import db, limiter
from herd.services.onboarding_service import OnboardingService

hosts_bp = Blueprint("hosts", __name__, url_prefix="/api/hosts")


def _service():
    return OnboardingService(
        db.session,
        current_app.extensions["stripe_gateway"],
        site_url=current_app.config["SITE_URL"],
    )


@hosts_bp.route("/onboard", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def onboard():
    url = _service().start_onboarding(current_user.id)
    return jsonify({"url": url}), 200


@hosts_bp.route("/onboard/finalize", methods=["POST"])
@login_required
def finalize_onboarding():
    flags = _service().finalize_onboarding(current_user.id)
    return jsonify({"ok": True, "flags": flags}), 200
