"""Onboarding service — Stripe Connect express accounts for hosts.

- start_onboarding: create the host's express account on first use, then
  return a hosted onboarding link
- finalize_onboarding: pull the account's capability flags from Stripe
  onto the host profile after they return from the hosted flow
"""

import logging

from herd.errors import InvalidInput, NotFound
from herd.models.user import User

logger = logging.getLogger(__name__)


class OnboardingService:

    def __init__(self, session, gateway, site_url):
        self.session = session
        self.gateway = gateway
        self.site_url = site_url.rstrip("/")

    def _get_profile(self, user_id):
        user = self.session.get(User, user_id) if user_id else None
        if user is None:
            raise NotFound("profile not found")
        return user

    def start_onboarding(self, user_id):
        """Return the URL of a Stripe-hosted onboarding flow for this host."""
        user = self._get_profile(user_id)

        if not user.stripe_account_id:
            account = self.gateway.create_express_account(email=user.email)
            user.stripe_account_id = account.id
            self.session.commit()
            logger.info(f"Created Stripe express account {account.id} for user {user.id}")

        link = self.gateway.create_onboarding_link(
            user.stripe_account_id,
            refresh_url=f"{self.site_url}/host?onboard=refresh",
            return_url=f"{self.site_url}/host?onboard=return",
        )
        return link.url

    def finalize_onboarding(self, user_id):
        """Sync onboarding flags from the Stripe account. Returns the flags."""
        user = self._get_profile(user_id)
        if not user.stripe_account_id:
            raise InvalidInput("no stripe_account_id on profile")

        account = self.gateway.retrieve_account(user.stripe_account_id)

        flags = {
            "stripe_onboarded": bool(getattr(account, "details_submitted", False)),
            "stripe_charges_enabled": bool(getattr(account, "charges_enabled", False)),
            "stripe_payouts_enabled": bool(getattr(account, "payouts_enabled", False)),
        }
        user.stripe_onboarded = flags["stripe_onboarded"]
        user.stripe_charges_enabled = flags["stripe_charges_enabled"]
        user.stripe_payouts_enabled = flags["stripe_payouts_enabled"]
        user.is_host = bool(user.is_host or flags["stripe_onboarded"])
        self.session.commit()

        logger.info(f"Synced Stripe onboarding flags for user {user.id}: {flags}")
        return flags
