"""
Payment ledger.
Reads and writes the payments table. One booking owns many payment rows.

Rules:
- Retries append a new row; the failed row keeps its status and amount
- The only write to a retried row is its version bump (claim_for_retry)
- Net total = captured + succeeded rows only
"""

from decimal import Decimal
from typing import Iterable, List, Optional

from ..models import Payment, PaymentStatus
from .errors import InvalidStateError
from .timing import utcnow


class PaymentLedger:
    """Persistence for payment attempts."""

    def __init__(self, client):
        self.client = client

    def get(self, payment_id: int) -> Optional[Payment]:
        result = (
            self.client.table("payments")
            .select("*")
            .eq("id", payment_id)
            .limit(1)
            .execute()
        )
        return Payment.model_validate(result.data[0]) if result.data else None

    def list_for_booking(self, booking_id: int) -> List[Payment]:
        """All rows for a booking, newest first."""
        result = (
            self.client.table("payments")
            .select("*")
            .eq("booking_id", booking_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [Payment.model_validate(row) for row in result.data or []]

    def list_by_status(self, statuses: Iterable[str], captured: Optional[bool] = None) -> List[Payment]:
        query = (
            self.client.table("payments")
            .select("*")
            .in_("status", list(statuses))
        )
        if captured is not None:
            query = query.eq("is_captured", captured)

        result = query.order("created_at", desc=True).execute()
        return [Payment.model_validate(row) for row in result.data or []]

    def append(self, **fields) -> Payment:
        """Insert a new attempt row."""
        fields.setdefault("created_at", utcnow().isoformat())
        fields.setdefault("is_captured", False)
        result = self.client.table("payments").insert(fields).execute()
        return Payment.model_validate(result.data[0])

    def update(self, payment_id: int, **fields) -> Payment:
        result = (
            self.client.table("payments")
            .update(fields)
            .eq("id", payment_id)
            .execute()
        )
        return Payment.model_validate(result.data[0])

    def claim_for_retry(self, payment: Payment) -> Payment:
        """
        Bump the row's version only if nobody else has since.
        Two admins retrying the same row: exactly one gets through.
        """
        result = (
            self.client.table("payments")
            .update({"version": payment.version + 1})
            .eq("id", payment.id)
            .eq("version", payment.version)
            .execute()
        )

        if not result.data:
            raise InvalidStateError(f"Payment #{payment.id} is already being retried")

        return Payment.model_validate(result.data[0])

    @staticmethod
    def is_counted(payment: Payment) -> bool:
        return payment.is_captured and payment.status == PaymentStatus.SUCCEEDED.value

    @classmethod
    def net_total(cls, payments: Iterable[Payment]) -> float:
        """Sum of captured, succeeded amounts. Refund rows are negative."""
        total = sum(
            (Decimal(str(p.amount)) for p in payments if cls.is_counted(p)),
            Decimal("0"),
        )
        return float(total.quantize(Decimal("0.01")))
