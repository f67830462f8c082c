"""Booking model.

A request (and optionally a payment) to reserve seats on a listing.
bookings.status is the source of truth for payment state; it only moves
forward, see herd.services.booking_status.

total_price / total_amount are fixed when the row is created and are
never recomputed from webhook data.
"""

import uuid

from herd.extensions import db
from herd.services.booking_status import STATUSES, PENDING


class Booking(db.Model):
    __tablename__ = "bookings"

    STATUSES = STATUSES

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    class_id = db.Column(
        db.String(36), db.ForeignKey("listings.id"), nullable=False
    )  # listing being booked
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )  # requester
    num_attendees = db.Column(db.Integer, nullable=False, default=1)
    attendee_names = db.Column(db.Text, nullable=True)
    total_price = db.Column(db.Numeric(10, 2), nullable=True)  # major units
    total_amount = db.Column(db.Integer, nullable=True)  # minor units (cents)
    status = db.Column(
        db.String(20), nullable=False, default=PENDING
    )  # pending | approved | approved_paid | paid | declined

    # --- Stripe references (written by checkout + webhooks) ---
    stripe_session_id = db.Column(db.String(255), nullable=True)
    stripe_payment_intent = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __table_args__ = (
        db.CheckConstraint("num_attendees > 0", name="ck_bookings_num_attendees_positive"),
        db.Index("ix_bookings_stripe_session_id", "stripe_session_id"),
    )

    # --- Relationships ---
    listing = db.relationship("Listing", back_populates="bookings")
    user = db.relationship("User", back_populates="bookings")

    def __repr__(self):
        return f"<Booking {self.id} ({self.status})>"
