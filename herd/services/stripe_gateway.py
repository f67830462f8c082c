"""Stripe gateway — the only module that talks to the Stripe API.

Constructed once per app in create_app() from config and handed to the
services that need it. The secret key is passed on every request instead
of being assigned to the process-wide stripe.api_key.

Every stripe.StripeError is re-raised as PaymentProcessorError so
callers never depend on SDK exception types, except for signature
failures which become SignatureInvalid.
"""

import json
import logging

import stripe

from herd.errors import PaymentProcessorError, SignatureInvalid
from herd.services.webhook_events import MalformedEvent

logger = logging.getLogger(__name__)


class StripeGateway:
    """Thin wrapper around the stripe SDK bound to one account's keys."""

    def __init__(self, secret_key, webhook_secret, currency="usd"):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY"),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET"),
            currency=config.get("STRIPE_CURRENCY", "usd"),
        )

    # ──────────────────────────────────────────────
    # Webhooks
    # ──────────────────────────────────────────────

    def verify_webhook(self, payload, sig_header):
        """Verify the Stripe-Signature header over the raw body.

        payload must be the exact bytes/text Stripe sent; re-serialised
        JSON will not verify. Returns the event envelope as a plain dict.
        Raises SignatureInvalid on a missing or bad signature and
        MalformedEvent if the signed body is not JSON.
        """
        if not sig_header:
            raise SignatureInvalid("Missing signature")
        try:
            stripe.WebhookSignature.verify_header(
                payload,
                sig_header,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid() from e

        try:
            return json.loads(payload)
        except ValueError as e:
            raise MalformedEvent("Malformed event: body is not JSON") from e

    # ──────────────────────────────────────────────
    # Checkout
    # ──────────────────────────────────────────────

    def create_checkout_session(self, *, unit_amount, quantity, product_name,
                                success_url, cancel_url, metadata,
                                client_reference_id=None):
        """Create a one-off payment Checkout Session.

        metadata is copied onto the PaymentIntent as well, so the
        payment_intent.succeeded webhook can find the booking without a
        second lookup.
        """
        params = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {"name": product_name},
                        "unit_amount": unit_amount,
                    },
                    "quantity": quantity,
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        if client_reference_id:
            params["client_reference_id"] = client_reference_id

        try:
            return stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise PaymentProcessorError() from e

    # ──────────────────────────────────────────────
    # Connect (host payouts)
    # ──────────────────────────────────────────────

    def create_express_account(self, email=None):
        params = {"type": "express", "business_type": "individual"}
        if email:
            params["email"] = email
        try:
            return stripe.Account.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe account creation failed: {e}")
            raise PaymentProcessorError() from e

    def create_onboarding_link(self, account_id, refresh_url, return_url):
        try:
            return stripe.AccountLink.create(
                api_key=self.secret_key,
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe account link creation failed for {account_id}: {e}")
            raise PaymentProcessorError() from e

    def retrieve_account(self, account_id):
        try:
            return stripe.Account.retrieve(account_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.error(f"Stripe account retrieval failed for {account_id}: {e}")
            raise PaymentProcessorError() from e

    def check_key(self):
        """Return the account the secret key belongs to (used by the CLI)."""
        return stripe.Account.retrieve(api_key=self.secret_key)
