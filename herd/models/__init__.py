# Models package — import all models here so Alembic can discover them.

from herd.models.user import User  # noqa: F401
from herd.models.listing import Listing  # noqa: F401
from herd.models.booking import Booking  # noqa: F401
from herd.models.stripe_event import StripeEvent  # noqa: F401
from herd.models.audit import AuditEvent  # noqa: F401
