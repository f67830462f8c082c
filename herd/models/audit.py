"""Audit event model.

One row per booking state change (payment transitions, direct bookings)
for support and reconciliation. Written in the same transaction as the
change it describes.
"""

import uuid

from herd.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    booking_id = db.Column(
        db.String(36), db.ForeignKey("bookings.id"), nullable=True, index=True
    )
    actor_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )  # None for webhook-driven changes
    action = db.Column(db.String(255), nullable=False)  # e.g. "booking.paid"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid the declarative attribute
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
