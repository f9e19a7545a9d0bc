"""
Booking routes.
Statuses returned here are effective statuses: a past booking reads as
COMPLETED unless it was cancelled.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ...lib import BookingService, get_current_user
from ...models import BookingStatus, CancelBookingRequest, User


router = APIRouter()


@router.get("")
async def list_bookings(
    status: Optional[BookingStatus] = None,
    user: User = Depends(get_current_user)
):
    """All bookings, optionally filtered by effective status."""
    service = BookingService()
    return {"bookings": service.list_bookings(user, status)}


@router.get("/stats")
async def get_booking_stats(
    user: User = Depends(get_current_user)
):
    """
    Dashboard numbers.

    Returns:
    - status_counts: bookings per effective status
    - total_revenue: final prices of completed bookings
    - pending_revenue: final prices of open bookings
    """
    service = BookingService()
    return service.get_booking_stats(user)


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user)
):
    service = BookingService()
    return service.get_booking(booking_id, user)


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    body: CancelBookingRequest,
    user: User = Depends(get_current_user)
):
    """
    Cancel a booking.

    Body:
    - cancellation_reason: shown to the client
    - charge_fee: force or waive the fee; omit to follow the window rule
    - fee_amount: override the configured fee
    - send_email: include the notification for the email sender
    - cancel_future_bookings: cancel the rest of a recurring series
    """
    service = BookingService()
    return service.cancel_booking(
        booking_id,
        user,
        cancellation_reason=body.cancellation_reason,
        charge_fee=body.charge_fee,
        fee_amount=body.fee_amount,
        send_email=body.send_email,
        cancel_future_bookings=body.cancel_future_bookings,
    )
