"""
Data models for the CleanOps payments backend.
Rows come back from Supabase as dicts; these models give them types.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


class Role(str, Enum):
    CLIENT = "CLIENT"
    CLEANER = "CLEANER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


class AdminPermission(str, Enum):
    """Fine-grained flags an ADMIN may hold. OWNER implicitly holds all."""
    MANAGE_BOOKINGS = "manage_bookings"
    MANAGE_CUSTOMERS = "manage_customers"
    MANAGE_CLEANERS = "manage_cleaners"
    MANAGE_ADMINS = "manage_admins"
    MANAGE_PRICING = "manage_pricing"
    MANAGE_TIME_OFF_REQUESTS = "manage_time_off_requests"
    MANAGE_CHECKLISTS = "manage_checklists"
    VIEW_REPORTS = "view_reports"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """
    Stripe payment-intent vocabulary, plus two local states:
    pending (fee recorded, nothing sent to Stripe) and
    processing (attempt row written, Stripe call in flight).
    """
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    PENDING = "pending"
    PROCESSING = "processing"


# Retry is only legal from these
RETRYABLE_STATUSES = (
    PaymentStatus.CANCELED.value,
    PaymentStatus.FAILED.value,
    PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
)

# Holds that cancelling a booking should release
RELEASABLE_HOLD_STATUSES = (
    PaymentStatus.PENDING.value,
    PaymentStatus.REQUIRES_CAPTURE.value,
)


class User(BaseModel):
    """User record. Permissions only matter for ADMIN."""
    id: int
    email: str
    role: Role = Role.CLIENT
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    admin_permissions: Dict[AdminPermission, bool] = Field(default_factory=dict)
    stripe_customer_id: Optional[str] = None

    @field_validator("admin_permissions", mode="before")
    @classmethod
    def load_permissions(cls, value):
        """Keep known keys with real booleans; drop anything else."""
        if not value:
            return {}
        if not isinstance(value, dict):
            raise ValueError("admin_permissions must be a mapping")

        known = {p.value for p in AdminPermission}
        permissions = {}
        for key, flag in value.items():
            if key not in known:
                logger.warning(f"Ignoring unknown admin permission: {key}")
                continue
            if not isinstance(flag, bool):
                raise ValueError(f"Permission {key} must be true or false")
            permissions[AdminPermission(key)] = flag
        return permissions

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Booking(BaseModel):
    """
    Booking record.
    `status` is the stored value; `effective_status` is filled in on read.
    """
    id: int
    client_id: int
    cleaner_id: Optional[int] = None
    scheduled_date: datetime
    scheduled_time: str = ""
    duration_hours: Optional[float] = None
    service_type: str
    service_frequency: str = "ONE_TIME"
    final_price: Optional[float] = None
    status: BookingStatus = BookingStatus.PENDING
    effective_status: Optional[BookingStatus] = None
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    special_instructions: Optional[str] = None
    address: Optional[str] = None


class Payment(BaseModel):
    """One attempt in a booking's payment ledger."""
    id: int
    booking_id: Optional[int] = None
    cleaner_id: Optional[int] = None
    amount: float
    status: Optional[str] = None
    is_captured: bool = False
    stripe_payment_intent_id: Optional[str] = None
    stripe_payment_method_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    retry_of_payment_id: Optional[int] = None
    version: int = 0


class Configuration(BaseModel):
    """Singleton business settings."""
    id: Optional[int] = None
    cancellation_window_hours: int = 48
    cancellation_fee_amount: float = 50.0
    payment_hold_delay_hours: Optional[int] = None


class RetryResult(BaseModel):
    """What a retry returns to the admin UI."""
    success: bool
    payment_id: int
    payment_intent_id: Optional[str] = None
    status: str
    amount: float
    message: str


class CaptureResult(BaseModel):
    success: bool
    payment_id: int
    payment_intent_id: str
    status: str
    amount: float


class RefundRequest(BaseModel):
    """Admin refund. Omit amount for a full refund."""
    amount: Optional[int] = Field(default=None, description="Amount in cents")
    reason: Optional[str] = Field(
        default=None,
        pattern="^(duplicate|fraudulent|requested_by_customer)$",
    )


class CancelBookingRequest(BaseModel):
    """
    Admin cancellation.
    charge_fee left unset means: follow the cancellation window rule.
    """
    cancellation_reason: Optional[str] = None
    charge_fee: Optional[bool] = None
    fee_amount: Optional[float] = Field(default=None, ge=0)
    send_email: bool = True
    cancel_future_bookings: bool = False


class ConfigurationUpdate(BaseModel):
    cancellation_window_hours: Optional[int] = Field(default=None, ge=0)
    cancellation_fee_amount: Optional[float] = Field(default=None, ge=0)
    payment_hold_delay_hours: Optional[int] = Field(default=None, gt=0)
