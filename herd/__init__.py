import os
import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from herd.config import config_by_name
from herd.errors import PaymentError
from herd.extensions import db, migrate, login_manager, csrf, limiter
from herd.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def create_app(config_name=None, stripe_gateway=None):
    """Application factory.

    stripe_gateway lets callers inject a preconfigured (or fake) gateway;
    by default one is built from the STRIPE_* config keys.
    """

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Payment processor client (explicit, per app) ---
    app.extensions["stripe_gateway"] = (
        stripe_gateway or StripeGateway.from_config(app.config)
    )

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from herd import models  # noqa: F401

    # --- Register blueprints ---
    from herd.blueprints.webhooks import webhooks_bp
    from herd.blueprints.checkout import checkout_bp
    from herd.blueprints.bookings import bookings_bp
    from herd.blueprints.hosts import hosts_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(hosts_bp)

    # Exempt webhooks from CSRF — raw body needed for Stripe signature verification
    csrf.exempt(webhooks_bp)
    # JSON APIs; the session cookie is SameSite=Lax, so cross-site POSTs carry no login
    csrf.exempt(checkout_bp)
    csrf.exempt(hosts_bp)

    # --- Error handlers ---
    register_error_handlers(app)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_error_handlers(app):
    """Render every failure as JSON { error } without internals."""

    @app.errorhandler(PaymentError)
    def payment_error(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.message}")
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({"error": "Something went wrong. Please try again."}), 500


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("purge-stripe-events")
    @click.option(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default STRIPE_EVENT_RETENTION_DAYS).",
    )
    def purge_stripe_events(days):
        """Delete processed-event records older than the retention window.

        Stripe stops retrying a delivery after a few days, so old rows no
        longer protect against duplicates.

        Usage:
            flask purge-stripe-events
            flask purge-stripe-events --days 30
        """
        from herd.services.event_store import EventStore

        if days is None:
            days = app.config["STRIPE_EVENT_RETENTION_DAYS"]
        if days < 1:
            raise click.BadParameter("must be at least 1", param_hint="--days")

        deleted = EventStore(db.session).purge_older_than(days)
        click.echo(f"Deleted {deleted} Stripe event record(s) older than {days} days.")

    @app.cli.command("verify-stripe-key")
    def verify_stripe_key():
        """Check STRIPE_SECRET_KEY works and report its mode (Live/Test)."""
        import stripe as _stripe

        api_key = app.config.get("STRIPE_SECRET_KEY")
        if not api_key:
            click.echo("ERROR: STRIPE_SECRET_KEY is not set.")
            return
        key_mode = "Live" if api_key.startswith("sk_live_") else "Test"
        click.echo(f"Stripe key mode: {key_mode}")

        if not app.config.get("STRIPE_WEBHOOK_SECRET"):
            click.echo("WARNING: STRIPE_WEBHOOK_SECRET is not set; webhooks will be rejected.")

        try:
            account = app.extensions["stripe_gateway"].check_key()
        except _stripe.StripeError as e:
            click.echo(f"ERROR: {e}")
            return
        click.echo(f"Account: {account.id}")
