#!/usr/bin/env python3
"""
Test C: Payment Retry

Validates:
1. A retry writes a new attempt row; the failed row keeps status and amount
2. Only canceled / failed / requires_payment_method rows can be retried
3. No card on file: nothing is written and nothing is charged
4. Declines are recorded on the new row and reported with Stripe's message
5. The attempt row id is the Stripe idempotency key
6. Two admins retrying the same row: only one claim succeeds
"""

import sys

from support import FakeProcessor, FakeSupabase, actor, header, run_suite, seed_booking, seed_payment, seed_world

from cleanops.lib.errors import InternalError, InvalidStateError, NotFoundError, ProcessorError
from cleanops.lib.payments import PaymentService


def make_service(default_card="pm_card_visa"):
    db = FakeSupabase()
    seed_world(db)
    seed_booking(db, 50, client_id=4)
    seed_payment(db, 500, 50, amount=150.0, status="failed", stripe_payment_method_id="pm_old")

    processor = FakeProcessor()
    processor.add_customer("cus_jane", default_payment_method=default_card)
    return db, processor, PaymentService(db, processor)


def test_successful_retry_appends_row():
    header("Successful retry appends a new row")

    db, processor, service = make_service()
    result = service.retry_payment(500, actor(db, 2))

    print(f"  result: success={result.success} payment_id={result.payment_id} status={result.status}")
    assert result.success is True
    assert result.message == "Payment retry successful"
    assert result.amount == 150.0
    assert result.payment_id != 500

    new_row = db.row("payments", result.payment_id)
    assert new_row["status"] == "succeeded"
    assert new_row["is_captured"] is True
    assert new_row["paid_at"] is not None
    assert new_row["retry_of_payment_id"] == 500
    assert new_row["stripe_payment_intent_id"] == result.payment_intent_id
    assert new_row["description"] == "Retry of failed payment #500"

    original = db.row("payments", 500)
    assert original["status"] == "failed"
    assert original["amount"] == 150.0
    assert original["is_captured"] is False
    assert original["version"] == 1
    print("  ✓ Original row untouched apart from its version")

    charge = processor.charges[0]
    assert charge["amount_cents"] == 15000
    assert charge["payment_method_id"] == "pm_card_visa"
    assert charge["idempotency_key"] == f"payment-{result.payment_id}"
    assert charge["metadata"]["retryOfPaymentId"] == 500
    print(f"  ✓ Charged {charge['amount_cents']} cents, key {charge['idempotency_key']}")


def test_non_retryable_statuses_rejected():
    header("Only declined rows can be retried")

    for status in ("succeeded", "requires_capture", "pending", "processing"):
        db, processor, service = make_service()
        db.row("payments", 500)["status"] = status
        rows_before = len(db.tables["payments"])

        try:
            service.retry_payment(500, actor(db, 1))
            raise AssertionError(f"retry allowed from {status}")
        except InvalidStateError as e:
            assert e.message == f"Cannot retry payment. Current status: {status}"
            assert e.status_code == 400

        assert len(db.tables["payments"]) == rows_before
        assert processor.charges == []
        print(f"  ✓ {status} rejected")

    for status in ("canceled", "requires_payment_method"):
        db, processor, service = make_service()
        db.row("payments", 500)["status"] = status
        assert service.retry_payment(500, actor(db, 1)).success
        print(f"  ✓ {status} retried")


def test_no_card_on_file_writes_nothing():
    header("No default card: zero rows written")

    db, processor, service = make_service(default_card=None)
    rows_before = len(db.tables["payments"])

    try:
        service.retry_payment(500, actor(db, 2))
        raise AssertionError("retry succeeded without a card")
    except InvalidStateError as e:
        print(f"  ✓ {e.message}")
        assert e.message == "Customer has no default payment method on file"

    assert len(db.tables["payments"]) == rows_before
    assert db.row("payments", 500)["version"] == 0
    assert not [c for c in db.calls if c[0] == "payments" and c[1] != "select"]
    assert processor.charges == []


def test_customer_created_when_missing():
    header("Client without a Stripe customer gets one")

    db, processor, service = make_service()
    db.row("bookings", 50)["client_id"] = 5

    try:
        service.retry_payment(500, actor(db, 2))
        raise AssertionError("new customer has no card yet")
    except InvalidStateError:
        pass

    created = processor.created_customers[0]
    assert db.row("users", 5)["stripe_customer_id"] == created
    print(f"  ✓ Customer {created} saved on the user row")


def test_customer_creation_failure():
    header("Stripe customer creation failure")

    db, processor, service = make_service()
    db.row("bookings", 50)["client_id"] = 5
    processor.fail_customer_creation = True

    try:
        service.retry_payment(500, actor(db, 2))
        raise AssertionError("retry continued without a customer")
    except InternalError as e:
        assert e.message == "Failed to create Stripe customer for payment retry"
        assert e.status_code == 500
        print(f"  ✓ {e.message}")

    assert db.row("users", 5).get("stripe_customer_id") is None


def test_decline_recorded_on_new_row():
    header("Declined retry is recorded, then reported")

    db, processor, service = make_service()
    processor.decline_message = "Your card was declined."

    try:
        service.retry_payment(500, actor(db, 2))
        raise AssertionError("declined retry reported success")
    except ProcessorError as e:
        print(f"  ✓ {e.message}")
        assert e.message == "Stripe error: Your card was declined."
        failed_attempt = db.row("payments", e.payment_id)

    assert failed_attempt["status"] == "failed"
    assert failed_attempt["retry_of_payment_id"] == 500
    assert failed_attempt["is_captured"] is False
    assert failed_attempt["description"] == "Failed retry of payment #500: Your card was declined."
    assert db.row("payments", 500)["status"] == "failed"
    print("  ✓ Attempt row marked failed, original unchanged")


def test_decline_survives_database_error():
    header("Stripe's error wins over a failed audit write")

    db, processor, service = make_service()

    class DecliningProcessor(FakeProcessor):
        def create_payment_intent(self, **kwargs):
            db.fail_updates.add("payments")
            raise ProcessorError("Insufficient funds")

    declining = DecliningProcessor()
    declining.add_customer("cus_jane", default_payment_method="pm_card_visa")
    service.processor = declining

    try:
        service.retry_payment(500, actor(db, 2))
        raise AssertionError("decline swallowed")
    except ProcessorError as e:
        assert e.processor_message == "Insufficient funds"
        print(f"  ✓ Still raised: {e.message}")


def test_non_final_intent_status():
    header("Intent not yet succeeded")

    db, processor, service = make_service()
    processor.intent_status = "requires_action"

    result = service.retry_payment(500, actor(db, 2))
    print(f"  {result.message}")
    assert result.success is False
    assert result.message == "Payment retry status: requires_action"
    assert db.row("payments", result.payment_id)["is_captured"] is False


def test_concurrent_claim_only_once():
    header("Two admins retrying the same row")

    db, processor, service = make_service()

    # Both admins loaded the row at version 0
    snapshot_a = service.ledger.get(500)
    snapshot_b = service.ledger.get(500)

    service.ledger.claim_for_retry(snapshot_a)
    try:
        service.ledger.claim_for_retry(snapshot_b)
        raise AssertionError("second claim succeeded")
    except InvalidStateError as e:
        print(f"  ✓ Second claim rejected: {e.message}")

    assert db.row("payments", 500)["version"] == 1


def test_missing_payment_and_booking():
    header("Unknown payment or orphaned row")

    db, processor, service = make_service()
    try:
        service.retry_payment(9999, actor(db, 2))
        raise AssertionError("unknown payment retried")
    except NotFoundError as e:
        assert e.message == "Payment not found"

    seed_payment(db, 501, None, status="failed")
    try:
        service.retry_payment(501, actor(db, 2))
        raise AssertionError("orphaned payment retried")
    except NotFoundError as e:
        assert e.status_code == 404
    print("  ✓ Both reported as not found")


def main():
    return run_suite("TEST C: PAYMENT RETRY", [
        test_successful_retry_appends_row,
        test_non_retryable_statuses_rejected,
        test_no_card_on_file_writes_nothing,
        test_customer_created_when_missing,
        test_customer_creation_failure,
        test_decline_recorded_on_new_row,
        test_decline_survives_database_error,
        test_non_final_intent_status,
        test_concurrent_claim_only_once,
        test_missing_payment_and_booking,
    ])


if __name__ == "__main__":
    sys.exit(main())
