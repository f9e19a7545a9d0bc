"""
Payment orchestration for bookings.

Payment attempt lifecycle:
    requires_payment_method / requires_capture  ->  succeeded | failed | canceled

- Retry: an admin re-charges a failed row. A new row is written for the
  attempt; the failed row stays as it was.
- Capture: collect funds from a hold (requires_capture).
- Hold release, refunds and automatic hold placement live here too.

Charges are two-phase: ensure the client has a Stripe customer, then attempt
the charge. The attempt row is written before Stripe is called and its id is
the Stripe idempotency key, so repeating a crashed attempt cannot charge twice.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from ..db import get_admin_client
from ..models import (
    AdminPermission,
    Booking,
    BookingStatus,
    CaptureResult,
    Payment,
    PaymentStatus,
    RELEASABLE_HOLD_STATUSES,
    RETRYABLE_STATUSES,
    RetryResult,
    User,
)
from .auth import authorize, load_user
from .errors import InternalError, InvalidStateError, NotFoundError, ProcessorError
from .ledger import PaymentLedger
from .processor import StripeProcessor, to_cents
from .records import client_summary, fetch_booking, fetch_bookings, fetch_users, matches_search
from .timing import EPOCH, as_utc, day_range, effective_status, in_range, utcnow


logger = logging.getLogger(__name__)


def idempotency_key_for(payment: Payment) -> str:
    return f"payment-{payment.id}"


class PaymentService:
    """Admin payment operations against Stripe and the payments ledger."""

    def __init__(self, client=None, processor=None):
        self.client = client or get_admin_client()
        self.processor = processor or StripeProcessor()
        self.ledger = PaymentLedger(self.client)

    # ------------------------------------------------------------------
    # Customer + card

    def ensure_customer(self, user: User) -> str:
        """
        Return the user's Stripe customer id, creating one if needed.
        A new id is saved on the user row before it is returned.
        """
        if user.stripe_customer_id:
            return user.stripe_customer_id

        try:
            customer_id = self.processor.create_customer(
                email=user.email,
                user_id=user.id,
                name=user.full_name,
                phone=user.phone,
            )
        except ProcessorError as e:
            logger.error(f"Stripe customer creation failed for user {user.id}: {e.processor_message}")
            raise InternalError("Failed to create Stripe customer for payment retry") from e

        self.client.table("users").update({
            "stripe_customer_id": customer_id,
        }).eq("id", user.id).execute()

        logger.info(f"Created Stripe customer {customer_id} for user {user.id}")
        return customer_id

    def default_payment_method(self, customer_id: str) -> str:
        method = self.processor.get_default_payment_method(customer_id)
        if not method:
            raise InvalidStateError("Customer has no default payment method on file")
        return method

    # ------------------------------------------------------------------
    # Charging

    def _record_failure(self, attempt: Payment, description: str) -> None:
        """Audit the failed attempt. A database error here must not hide Stripe's."""
        try:
            self.ledger.update(
                attempt.id,
                status=PaymentStatus.FAILED.value,
                is_captured=False,
                paid_at=None,
                description=description,
            )
        except Exception:
            logger.exception(f"Failed to record failed payment attempt #{attempt.id}")

    def attempt_charge(
        self,
        booking: Booking,
        amount: float,
        customer_id: str,
        payment_method_id: str,
        description: str,
        metadata: dict,
        retry_of: Optional[Payment] = None,
    ) -> Payment:
        """
        Charge now (automatic capture) and return the attempt row.

        On a Stripe error the row is marked failed with the error text and the
        ProcessorError is re-raised with `payment_id` set to that row.
        """
        attempt = self.ledger.append(
            booking_id=booking.id,
            cleaner_id=booking.cleaner_id,
            amount=amount,
            status=PaymentStatus.PROCESSING.value,
            description=description,
            stripe_payment_method_id=payment_method_id,
            retry_of_payment_id=retry_of.id if retry_of else None,
        )

        try:
            intent = self.processor.create_payment_intent(
                amount=amount,
                customer_id=customer_id,
                payment_method_id=payment_method_id,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key_for(attempt),
            )
        except ProcessorError as e:
            if retry_of:
                failure = f"Failed retry of payment #{retry_of.id}: {e.processor_message}"
            else:
                failure = f"{description} failed: {e.processor_message}"
            self._record_failure(attempt, failure)
            e.payment_id = attempt.id
            raise

        succeeded = intent.status == PaymentStatus.SUCCEEDED.value
        return self.ledger.update(
            attempt.id,
            stripe_payment_intent_id=intent.id,
            status=intent.status,
            is_captured=succeeded,
            paid_at=utcnow().isoformat() if succeeded else None,
        )

    def retry_payment(self, payment_id: int, actor: User) -> RetryResult:
        """Re-charge a failed payment for its original amount."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        failed = self.ledger.get(payment_id)
        if not failed:
            raise NotFoundError("Payment not found")

        booking = fetch_booking(self.client, failed.booking_id) if failed.booking_id else None
        if not booking:
            raise NotFoundError("Payment has no associated booking")

        if failed.status not in RETRYABLE_STATUSES:
            raise InvalidStateError(f"Cannot retry payment. Current status: {failed.status}")

        client_user = load_user(self.client, booking.client_id)
        customer_id = self.ensure_customer(client_user)
        method = self.default_payment_method(customer_id)

        failed = self.ledger.claim_for_retry(failed)

        payment = self.attempt_charge(
            booking=booking,
            amount=failed.amount,
            customer_id=customer_id,
            payment_method_id=method,
            description=f"Retry of failed payment #{failed.id}",
            metadata={
                "bookingId": booking.id,
                "clientId": client_user.id,
                "retryOfPaymentId": failed.id,
            },
            retry_of=failed,
        )

        success = payment.status == PaymentStatus.SUCCEEDED.value
        logger.info(f"Retry of payment #{failed.id} -> #{payment.id}: {payment.status}")

        return RetryResult(
            success=success,
            payment_id=payment.id,
            payment_intent_id=payment.stripe_payment_intent_id,
            status=payment.status,
            amount=payment.amount,
            message="Payment retry successful" if success else f"Payment retry status: {payment.status}",
        )

    def charge_cancellation_fee(self, booking: Booking, client_user: User, amount: float, reason: Optional[str]) -> Payment:
        """
        Charge the fee to the client's default card.
        Without a usable card the fee is recorded as requires_payment_method
        so it shows up with the declined charges and can be retried.
        """
        description = f"Cancellation Fee - {reason or 'No reason provided'}"

        try:
            customer_id = self.ensure_customer(client_user)
            method = self.default_payment_method(customer_id)
        except (InternalError, InvalidStateError, ProcessorError) as e:
            logger.warning(f"Cancellation fee for booking #{booking.id} not charged: {e.message}")
            return self.ledger.append(
                booking_id=booking.id,
                cleaner_id=booking.cleaner_id,
                amount=amount,
                status=PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
                description=f"{description} ({e.message})",
            )

        try:
            return self.attempt_charge(
                booking=booking,
                amount=amount,
                customer_id=customer_id,
                payment_method_id=method,
                description=description,
                metadata={
                    "bookingId": booking.id,
                    "clientId": client_user.id,
                    "type": "cancellation_fee",
                },
            )
        except ProcessorError as e:
            logger.warning(f"Cancellation fee for booking #{booking.id} declined: {e.processor_message}")
            return self.ledger.get(e.payment_id)

    # ------------------------------------------------------------------
    # Holds

    def capture_payment_hold(self, payment_id: int, actor: User) -> CaptureResult:
        """Collect a held payment. Stripe errors leave the row untouched."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        payment = self.ledger.get(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")

        if not payment.stripe_payment_intent_id:
            raise InvalidStateError("No Stripe payment intent found for this payment")

        if payment.is_captured:
            raise InvalidStateError("Payment has already been captured")

        if payment.status != PaymentStatus.REQUIRES_CAPTURE.value:
            raise InvalidStateError(f"Cannot capture payment. Current status: {payment.status}")

        intent = self.processor.capture_payment_intent(payment.stripe_payment_intent_id)

        updated = self.ledger.update(
            payment.id,
            status=intent.status,
            is_captured=True,
            paid_at=utcnow().isoformat(),
        )

        return CaptureResult(
            success=True,
            payment_id=updated.id,
            payment_intent_id=payment.stripe_payment_intent_id,
            status=intent.status,
            amount=updated.amount,
        )

    def cancel_payment_hold(self, booking_id: int, actor: User) -> dict:
        """Release the booking's most recent hold."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        booking = fetch_booking(self.client, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        payments = self.ledger.list_for_booking(booking_id)
        payment = payments[0] if payments else None

        if not payment or not payment.stripe_payment_intent_id:
            raise NotFoundError("No payment hold found for this booking")

        if payment.status in (PaymentStatus.SUCCEEDED.value, PaymentStatus.CANCELED.value):
            raise InvalidStateError(f"Cannot cancel payment hold. Payment status: {payment.status}")

        intent = self.processor.cancel_payment_intent(payment.stripe_payment_intent_id)
        self.ledger.update(payment.id, status=intent.status)

        return {
            "success": True,
            "payment_intent_id": payment.stripe_payment_intent_id,
            "status": intent.status,
        }

    def release_holds(self, payments: List[Payment]) -> int:
        """
        Cancel every open hold in the list. Failures are logged and skipped;
        an admin can release them one by one afterwards.
        """
        released = 0
        for hold in payments:
            if not hold.stripe_payment_intent_id or hold.is_captured:
                continue
            if hold.status not in RELEASABLE_HOLD_STATUSES:
                continue

            try:
                intent = self.processor.cancel_payment_intent(hold.stripe_payment_intent_id)
                self.ledger.update(hold.id, status=intent.status)
                released += 1
            except ProcessorError as e:
                logger.error(f"Failed to cancel payment hold #{hold.id}: {e.processor_message}")

        return released

    def place_payment_holds(self, now: Optional[datetime] = None, delay_hours: Optional[int] = None) -> dict:
        """
        Put a manual-capture hold on bookings starting within delay_hours.
        Run from a scheduler; there is no acting user.
        """
        from .configuration import ConfigurationService

        if delay_hours is None:
            delay_hours = ConfigurationService(self.client).get().payment_hold_delay_hours

        results = {"processed": 0, "success": 0, "failed": 0, "skipped": 0, "errors": []}
        if not delay_hours:
            logger.info("No payment hold delay configured. Skipping.")
            return results

        now = now or utcnow()
        horizon = now + timedelta(hours=delay_hours)

        rows = (
            self.client.table("bookings")
            .select("*")
            .gt("scheduled_date", now.isoformat())
            .lte("scheduled_date", horizon.isoformat())
            .execute()
        )
        bookings = [
            Booking.model_validate(row) for row in rows.data or []
            if row["status"] not in (
                BookingStatus.CANCELLED.value,
                BookingStatus.COMPLETED.value,
                BookingStatus.IN_PROGRESS.value,
            )
        ]
        clients = fetch_users(self.client, [b.client_id for b in bookings])
        logger.info(f"Found {len(bookings)} bookings in the hold window")

        for booking in bookings:
            results["processed"] += 1

            if self._has_active_hold(booking.id):
                results["skipped"] += 1
                continue

            client_user = clients.get(booking.client_id)
            amount = booking.final_price or 0
            if not client_user or not client_user.stripe_customer_id or amount <= 0:
                logger.info(f"Booking #{booking.id} skipped: no Stripe customer or price")
                results["skipped"] += 1
                continue

            try:
                self._place_hold(booking, client_user, amount)
                results["success"] += 1
            except (ProcessorError, InvalidStateError) as e:
                logger.error(f"Hold failed for booking #{booking.id}: {e.message}")
                results["failed"] += 1
                results["errors"].append(f"Booking #{booking.id}: {e.message}")

        return results

    def _has_active_hold(self, booking_id: int) -> bool:
        return any(
            p.stripe_payment_intent_id
            and not p.is_captured
            and p.status not in (PaymentStatus.CANCELED.value, PaymentStatus.FAILED.value)
            for p in self.ledger.list_for_booking(booking_id)
        )

    def _place_hold(self, booking: Booking, client_user: User, amount: float) -> Payment:
        customer_id = client_user.stripe_customer_id
        method = self.processor.get_default_payment_method(customer_id)
        if not method:
            cards = self.processor.list_card_payment_methods(customer_id)
            method = cards[0] if cards else None
        if not method:
            raise InvalidStateError("No usable payment method found")

        intent = self.processor.create_payment_intent(
            amount=amount,
            customer_id=customer_id,
            payment_method_id=method,
            description=f"Automatic Payment Hold for Booking #{booking.id}",
            metadata={
                "bookingId": booking.id,
                "clientId": client_user.id,
                "type": "auto_hold",
            },
            capture_method="manual",
            idempotency_key=f"hold-{booking.id}-{booking.scheduled_date.date().isoformat()}",
        )

        payment = self.ledger.append(
            booking_id=booking.id,
            cleaner_id=booking.cleaner_id,
            amount=amount,
            description="Automatic Payment Hold",
            stripe_payment_intent_id=intent.id,
            stripe_payment_method_id=method,
            status=intent.status,
        )

        self.client.table("bookings").update({
            "payment_details": f"Saved card {method} - Auto Hold: {intent.id}",
        }).eq("id", booking.id).execute()

        return payment

    # ------------------------------------------------------------------
    # Refunds

    def issue_refund(
        self,
        payment_id: int,
        actor: User,
        amount_cents: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """Refund a captured payment; the refund is a negative ledger row."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        payment = self.ledger.get(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")

        if not payment.stripe_payment_intent_id:
            raise InvalidStateError("No Stripe payment intent found for this payment")

        if not self.ledger.is_counted(payment):
            raise InvalidStateError(
                "Cannot refund payment. Payment must be captured and succeeded. "
                f"Current status: {payment.status}"
            )

        if amount_cents is not None:
            limit = to_cents(payment.amount)
            if amount_cents <= 0 or amount_cents > limit:
                raise InvalidStateError(f"Invalid refund amount. Must be between 1 and {limit} cents")

        refund = self.processor.create_refund(payment.stripe_payment_intent_id, amount_cents, reason)
        refunded = refund.amount / 100
        label = reason.replace("_", " ") if reason else "Manual Refund"

        self.ledger.append(
            booking_id=payment.booking_id,
            cleaner_id=payment.cleaner_id,
            amount=-refunded,
            description=f"Refund for Payment #{payment.id} - {label}",
            stripe_payment_intent_id=payment.stripe_payment_intent_id,
            stripe_payment_method_id=payment.stripe_payment_method_id,
            status=PaymentStatus.SUCCEEDED.value,
            is_captured=True,
            paid_at=utcnow().isoformat(),
        )

        return {
            "success": True,
            "refund_id": refund.id,
            "amount": refunded,
            "status": refund.status,
            "payment_intent_id": payment.stripe_payment_intent_id,
        }

    # ------------------------------------------------------------------
    # Admin charge tables

    def _with_context(self, payments: List[Payment]) -> List[dict]:
        bookings = fetch_bookings(self.client, [p.booking_id for p in payments])
        clients = fetch_users(self.client, [b.client_id for b in bookings.values()])
        rows = []
        for payment in payments:
            booking = bookings.get(payment.booking_id)
            client_user = clients.get(booking.client_id) if booking else None
            rows.append({"payment": payment, "booking": booking, "client": client_user})
        return rows

    def get_pending_charges(
        self,
        actor: User,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search_term: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[dict]:
        """Completed bookings whose holds are still waiting to be captured."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)
        start, end = day_range(start_date, end_date)

        holds = self.ledger.list_by_status([PaymentStatus.REQUIRES_CAPTURE.value], captured=False)
        grouped = {}
        for row in self._with_context(holds):
            booking = row["booking"]
            if booking is None:
                continue
            if effective_status(booking.status, booking.scheduled_date, now) != BookingStatus.COMPLETED:
                continue
            if not in_range(booking.scheduled_date, start, end):
                continue
            if not matches_search(search_term, booking, row["client"]):
                continue

            entry = grouped.setdefault(booking.id, {
                "booking": booking,
                "client": client_summary(row["client"]),
                "payments": [],
            })
            entry["payments"].append(row["payment"])

        return sorted(grouped.values(), key=lambda e: as_utc(e["booking"].scheduled_date), reverse=True)

    def get_declined_charges(
        self,
        actor: User,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search_term: Optional[str] = None,
    ) -> List[dict]:
        """Retryable payments, filtered by the booking's scheduled date."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)
        start, end = day_range(start_date, end_date)

        declined = []
        for row in self._with_context(self.ledger.list_by_status(RETRYABLE_STATUSES)):
            booking = row["booking"]
            if (start or end) and (booking is None or not in_range(booking.scheduled_date, start, end)):
                continue
            if search_term and (booking is None or not matches_search(search_term, booking, row["client"])):
                continue
            declined.append({**row, "client": client_summary(row["client"])})

        return declined

    def get_captured_charges(
        self,
        actor: User,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search_term: Optional[str] = None,
    ) -> List[dict]:
        """Captured, succeeded payments (refunds included), filtered by paid date."""
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)
        start, end = day_range(start_date, end_date)

        captured = []
        for row in self._with_context(self.ledger.list_by_status([PaymentStatus.SUCCEEDED.value], captured=True)):
            if not in_range(row["payment"].paid_at, start, end):
                continue
            if search_term and (row["booking"] is None or not matches_search(search_term, row["booking"], row["client"])):
                continue
            captured.append({**row, "client": client_summary(row["client"])})

        return sorted(captured, key=lambda r: as_utc(r["payment"].paid_at) or EPOCH, reverse=True)

    def reconcile_booking(self, booking_id: int, actor: User) -> dict:
        """
        Compare the visible net total with the booking's final price.
        Mismatches are reported, not corrected.
        """
        authorize(actor, AdminPermission.MANAGE_BOOKINGS)

        booking = fetch_booking(self.client, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        payments = self.ledger.list_for_booking(booking_id)
        net = self.ledger.net_total(payments)
        final_price = booking.final_price

        return {
            "booking_id": booking.id,
            "final_price": final_price,
            "net_total": net,
            "difference": None if final_price is None else round(net - final_price, 2),
            "matches": final_price is not None and to_cents(net) == to_cents(final_price),
            "payments": payments,
        }
