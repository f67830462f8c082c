"""Listing model.

Read-only from this service's point of view: listing CRUD belongs to the
marketplace front end. Checkout only needs the title and the current
per-person price.
"""

import uuid

from herd.extensions import db


class Listing(db.Model):
    __tablename__ = "listings"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    host_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    title = db.Column(db.String(255), nullable=True)
    price_per_person = db.Column(
        db.Numeric(10, 2), nullable=True
    )  # major currency units, e.g. 25.00
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    host = db.relationship("User", back_populates="listings")
    bookings = db.relationship("Booking", back_populates="listing", lazy="dynamic")

    def __repr__(self):
        return f"<Listing {self.title} ({self.price_per_person})>"
