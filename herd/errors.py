"""Payment-core exceptions.

Each exception carries the HTTP status it maps to, so the API blueprints
can render every failure with one handler:

    InvalidInput / InvalidPrice  -> 400 (do not retry)
    SignatureInvalid             -> 400 (do not retry, security event)
    Unauthenticated              -> 401
    NotFound                     -> 404
    TransientStorageFailure      -> 500 (retry)
    PaymentProcessorError        -> 502 (retry)

A duplicate webhook delivery is not an error and has no class here.
"""


class PaymentError(Exception):
    """Base class for errors surfaced by the payment core."""

    status_code = 500
    message = "Something went wrong."

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidInput(PaymentError):
    status_code = 400
    message = "Invalid request."


class InvalidPrice(InvalidInput):
    message = "Invalid price for class/booking"


class NotFound(PaymentError):
    status_code = 404
    message = "Not found"


class Unauthenticated(PaymentError):
    status_code = 401
    message = "Not authenticated"


class SignatureInvalid(PaymentError):
    status_code = 400
    message = "Invalid signature"


class TransientStorageFailure(PaymentError):
    """Conditional write lost a race or the database was unreachable.

    Safe to retry: every write in the core is idempotent or conditional.
    """

    status_code = 500
    message = "Temporary storage failure, please retry."


class PaymentProcessorError(PaymentError):
    status_code = 502
    message = "Payment processor unavailable, please try again."
