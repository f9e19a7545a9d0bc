"""
Booking reads and admin cancellation.

Every booking handed out by this module carries its effective status, and
stats bucket on that, not on the stored column.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..db import get_admin_client
from ..models import AdminPermission, Booking, BookingStatus, PaymentStatus, User
from .auth import authorize, load_user
from .configuration import ConfigurationService
from .errors import InvalidStateError, NotFoundError
from .payments import PaymentService
from .records import fetch_booking
from .timing import business_timezone, as_utc, cancellation_fee_applies, utcnow, with_effective_status


logger = logging.getLogger(__name__)

FEE_TEMPLATE = "booking_cancellation_fee"
NO_FEE_TEMPLATE = "booking_cancellation_no_fee"

OPEN_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)


class BookingService:
    """Admin booking operations."""

    def __init__(self, client=None, payments: Optional[PaymentService] = None):
        self.client = client or get_admin_client()
        self.payments = payments or PaymentService(self.client)
        self.config = ConfigurationService(self.client)

    def _all_bookings(self) -> List[Booking]:
        result = (
            self.client.table("bookings")
            .select("*")
            .order("scheduled_date")
            .execute()
        )
        return [Booking.model_validate(row) for row in result.data or []]

    def list_bookings(
        self,
        actor: User,
        status: Optional[BookingStatus] = None,
        now: Optional[datetime] = None,
    ) -> List[Booking]:
        """All bookings, optionally filtered by effective status."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        bookings = [with_effective_status(b, now) for b in self._all_bookings()]
        if status is not None:
            bookings = [b for b in bookings if b.effective_status == BookingStatus(status)]
        return bookings

    def get_booking(self, booking_id: int, actor: User, now: Optional[datetime] = None) -> Booking:
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        booking = fetch_booking(self.client, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return with_effective_status(booking, now)

    def get_booking_stats(self, actor: User, now: Optional[datetime] = None) -> dict:
        """Counts and revenue, bucketed by effective status."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        bookings = [with_effective_status(b, now) for b in self._all_bookings()]
        counts = {s.value: 0 for s in BookingStatus}
        for booking in bookings:
            counts[booking.effective_status.value] += 1

        total_revenue = sum(
            b.final_price for b in bookings
            if b.final_price is not None and b.effective_status == BookingStatus.COMPLETED
        )
        pending_revenue = sum(
            b.final_price for b in bookings
            if b.final_price is not None and b.effective_status in OPEN_STATUSES
        )

        return {
            "total_bookings": len(bookings),
            "status_counts": counts,
            "total_revenue": round(total_revenue, 2),
            "pending_revenue": round(pending_revenue, 2),
        }

    def cancel_booking(
        self,
        booking_id: int,
        actor: User,
        cancellation_reason: Optional[str] = None,
        charge_fee: Optional[bool] = None,
        fee_amount: Optional[float] = None,
        send_email: bool = True,
        cancel_future_bookings: bool = False,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Cancel a booking.

        1. Mark it CANCELLED (reason appended to special instructions)
        2. Release open holds
        3. Charge the cancellation fee if it applies
        4. Pick the notification template
        5. Optionally cancel the rest of a recurring series
        """
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)
        now = as_utc(now) or utcnow()

        booking = fetch_booking(self.client, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        if booking.status == BookingStatus.CANCELLED:
            raise InvalidStateError("Booking is already cancelled")

        config = self.config.get()
        client_user = load_user(self.client, booking.client_id)

        notes = booking.special_instructions
        if cancellation_reason:
            reason_line = f"Cancellation Reason: {cancellation_reason}"
            notes = f"{notes}\n\n{reason_line}" if notes else reason_line

        result = (
            self.client.table("bookings")
            .update({"status": BookingStatus.CANCELLED.value, "special_instructions": notes})
            .eq("id", booking.id)
            .execute()
        )
        cancelled = with_effective_status(Booking.model_validate(result.data[0]), now)

        released = self.payments.release_holds(self.payments.ledger.list_for_booking(booking.id))

        fee_due = cancellation_fee_applies(booking.scheduled_date, config.cancellation_window_hours, now)
        if charge_fee is not None:
            fee_due = charge_fee

        fee = fee_amount if fee_amount is not None else config.cancellation_fee_amount
        fee_payment = None
        if fee_due and fee > 0:
            fee_payment = self.payments.charge_cancellation_fee(booking, client_user, fee, cancellation_reason)

        fee_charged = fee_payment is not None
        notification = None
        if send_email:
            notification = self._cancellation_notice(booking, client_user, fee if fee_charged else 0, cancellation_reason)

        future_cancelled = []
        if cancel_future_bookings and booking.service_frequency != "ONE_TIME":
            future_cancelled = self._cancel_series(booking)

        logger.info(
            f"Booking #{booking.id} cancelled by user {actor.id}: "
            f"fee={'yes' if fee_charged else 'no'}, holds released={released}, "
            f"future cancelled={len(future_cancelled)}"
        )

        return {
            "success": True,
            "booking": cancelled,
            "fee_charged": fee_charged,
            "fee_amount": fee if fee_charged else 0.0,
            "fee_payment": fee_payment,
            "fee_collected": bool(fee_payment and fee_payment.status == PaymentStatus.SUCCEEDED.value),
            "holds_released": released,
            "notification": notification,
            "future_bookings_cancelled": future_cancelled,
        }

    def _cancellation_notice(
        self,
        booking: Booking,
        client_user: User,
        fee: float,
        reason: Optional[str],
    ) -> dict:
        """Template name and substitutions for the email sender."""
        local = as_utc(booking.scheduled_date).astimezone(business_timezone())
        return {
            "template": FEE_TEMPLATE if fee else NO_FEE_TEMPLATE,
            "to": client_user.email,
            "variables": {
                "customer_first_name": client_user.first_name or "Customer",
                "customer_last_name": client_user.last_name or "",
                "service_type": booking.service_type,
                "scheduled_date": f"{local.month}/{local.day}/{local.year}",
                "scheduled_time": booking.scheduled_time,
                "cancellation_fee": f"${fee:.2f}",
                "cancellation_reason": reason or "N/A",
            },
        }

    def _cancel_series(self, booking: Booking) -> List[int]:
        """Cancel later open bookings in the same recurring series."""
        result = (
            self.client.table("bookings")
            .select("*")
            .eq("client_id", booking.client_id)
            .eq("service_type", booking.service_type)
            .eq("service_frequency", booking.service_frequency)
            .gt("scheduled_date", as_utc(booking.scheduled_date).isoformat())
            .execute()
        )
        future = [
            Booking.model_validate(row) for row in result.data or []
            if row["status"] not in (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value)
        ]
        ids = [b.id for b in future]
        if not ids:
            return []

        self.client.table("bookings").update({
            "status": BookingStatus.CANCELLED.value,
            "special_instructions": f"Cancelled via bulk cancellation of booking #{booking.id}",
        }).in_("id", ids).execute()

        for future_booking in future:
            self.payments.release_holds(self.payments.ledger.list_for_booking(future_booking.id))

        return ids
