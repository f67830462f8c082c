"""User model.

Minimal requester / host profile. Registration, login and password flows
live outside this service; the session cookie is trusted through
Flask-Login's user_loader.
"""

import uuid

from flask_login import UserMixin

from herd.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=True)
    full_name = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)

    # --- Host payout onboarding (synced from the Stripe account) ---
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    stripe_account_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "acct_1Abc..."
    stripe_onboarded = db.Column(db.Boolean, default=False, nullable=False)
    stripe_charges_enabled = db.Column(db.Boolean, default=False, nullable=False)
    stripe_payouts_enabled = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    bookings = db.relationship("Booking", back_populates="user", lazy="dynamic")
    listings = db.relationship("Listing", back_populates="host", lazy="dynamic")

    def __repr__(self):
        return f"<User {self.email or self.id}>"
