"""Booking status values and the payment transition table.

    approved             + payment succeeded -> approved_paid
    approved_paid / paid + payment succeeded -> unchanged
    pending / declined   + payment succeeded -> paid

approved_paid keeps "the host approved before the guest paid" visible for
display and audit; a direct or unapproved payment is simply paid.
Failure / refund events have no transition.
"""

PENDING = "pending"
APPROVED = "approved"
APPROVED_PAID = "approved_paid"
PAID = "paid"
DECLINED = "declined"

STATUSES = [PENDING, APPROVED, APPROVED_PAID, PAID, DECLINED]
PAID_STATUSES = (PAID, APPROVED_PAID)


def is_paid(status):
    return status in PAID_STATUSES


def is_approved(status):
    return status == APPROVED


def is_pending(status):
    return status == PENDING


def is_declined(status):
    return status == DECLINED


def next_status_on_payment(current):
    """Status a booking moves to when a payment-success event arrives."""
    if current == APPROVED:
        return APPROVED_PAID
    if is_paid(current):
        return current
    return PAID
