"""
Payment routes.
Everything an admin does to a booking's money.

Endpoints:
- POST /payments/{id}/retry - Re-charge a declined payment
- POST /payments/{id}/capture - Collect a hold
- POST /payments/{id}/refund - Full or partial refund
- POST /bookings/{id}/cancel-hold - Release a booking's hold
- GET /bookings/{id}/ledger - Net total vs final price
- GET /charges/pending|declined|captured - Admin charge tables
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from ...lib import PaymentService, get_current_user
from ...models import CaptureResult, RefundRequest, RetryResult, User


router = APIRouter()


@router.post("/payments/{payment_id}/retry", response_model=RetryResult)
async def retry_payment(
    payment_id: int,
    user: User = Depends(get_current_user)
):
    """
    Retry a failed, canceled or card-less payment.

    Charges the client's default card for the original amount and
    records the attempt as a new payment row.

    Returns:
    - success: Whether the charge went through
    - payment_id: The new payment row
    - status: Stripe's status for the new attempt
    - message: Shown to the admin as-is
    """
    service = PaymentService()
    return service.retry_payment(payment_id, user)


@router.post("/payments/{payment_id}/capture", response_model=CaptureResult)
async def capture_payment_hold(
    payment_id: int,
    user: User = Depends(get_current_user)
):
    """Capture an authorized hold. No automatic retry on failure."""
    service = PaymentService()
    return service.capture_payment_hold(payment_id, user)


@router.post("/payments/{payment_id}/refund")
async def issue_refund(
    payment_id: int,
    body: RefundRequest,
    user: User = Depends(get_current_user)
):
    """
    Refund a captured payment.

    Body:
    - amount: cents, omit for a full refund
    - reason: duplicate, fraudulent or requested_by_customer
    """
    service = PaymentService()
    return service.issue_refund(payment_id, user, body.amount, body.reason)


@router.post("/bookings/{booking_id}/cancel-hold")
async def cancel_payment_hold(
    booking_id: int,
    user: User = Depends(get_current_user)
):
    """Release the most recent hold on a booking."""
    service = PaymentService()
    return service.cancel_payment_hold(booking_id, user)


@router.get("/bookings/{booking_id}/ledger")
async def get_booking_ledger(
    booking_id: int,
    user: User = Depends(get_current_user)
):
    """
    Payments for a booking with the visible net total.

    matches is False when captured charges do not add up to the final price.
    """
    service = PaymentService()
    return service.reconcile_booking(booking_id, user)


@router.get("/charges/pending")
async def get_pending_charges(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    user: User = Depends(get_current_user)
):
    """Completed bookings with holds still to capture."""
    service = PaymentService()
    return {"bookings": service.get_pending_charges(user, start_date, end_date, search)}


@router.get("/charges/declined")
async def get_declined_charges(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    user: User = Depends(get_current_user)
):
    """Payments that can be retried."""
    service = PaymentService()
    return {"payments": service.get_declined_charges(user, start_date, end_date, search)}


@router.get("/charges/captured")
async def get_captured_charges(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    user: User = Depends(get_current_user)
):
    """Collected money, refunds included as negative rows."""
    service = PaymentService()
    return {"payments": service.get_captured_charges(user, start_date, end_date, search)}
