from .schemas import (
    Role,
    AdminPermission,
    BookingStatus,
    PaymentStatus,
    RETRYABLE_STATUSES,
    RELEASABLE_HOLD_STATUSES,
    User,
    Booking,
    Payment,
    Configuration,
    RetryResult,
    CaptureResult,
    RefundRequest,
    CancelBookingRequest,
    ConfigurationUpdate,
)

__all__ = [
    "Role",
    "AdminPermission",
    "BookingStatus",
    "PaymentStatus",
    "RETRYABLE_STATUSES",
    "RELEASABLE_HOLD_STATUSES",
    "User",
    "Booking",
    "Payment",
    "Configuration",
    "RetryResult",
    "CaptureResult",
    "RefundRequest",
    "CancelBookingRequest",
    "ConfigurationUpdate",
]
