from .errors import (
    ServiceError,
    AuthError,
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    ProcessorError,
    InternalError,
)
from .auth import authenticate, authorize, has_permission, get_current_user
from .processor import StripeProcessor, to_cents
from .ledger import PaymentLedger
from .payments import PaymentService
from .configuration import ConfigurationService
from .bookings import BookingService
from .timing import effective_status, cancellation_fee_applies

__all__ = [
    "ServiceError",
    "AuthError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ProcessorError",
    "InternalError",
    "authenticate",
    "authorize",
    "has_permission",
    "get_current_user",
    "StripeProcessor",
    "to_cents",
    "PaymentLedger",
    "PaymentService",
    "ConfigurationService",
    "BookingService",
    "effective_status",
    "cancellation_fee_applies",
]
