"""
Shared test doubles.

FakeSupabase mimics the query-builder calls the services make
(select/insert/update, eq/in_/gt/gte/lt/lte, order, limit, execute).
FakeProcessor stands in for the Stripe adapter.
"""

import copy
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import jwt

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cleanops.lib.errors import ProcessorError  # noqa: E402
from cleanops.lib.processor import to_cents  # noqa: E402


JWT_SECRET = "cleanops-test-signing-secret-0123456789"
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)

TABLE_DEFAULTS = {
    "payments": {
        "version": 0,
        "is_captured": False,
        "retry_of_payment_id": None,
        "stripe_payment_intent_id": None,
        "stripe_payment_method_id": None,
        "paid_at": None,
    },
    "bookings": {
        "status": "PENDING",
        "service_frequency": "ONE_TIME",
        "special_instructions": None,
    },
}


def _comparable(value):
    """ISO timestamps compare as datetimes, like Postgres would."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and len(value) >= 19 and value[4] == "-" and value[10] == "T":
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def select(self, columns="*", count=None):
        return self

    def insert(self, data):
        self.action = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.action = "update"
        self.payload = data
        return self

    def _where(self, column, test):
        self.filters.append(lambda row: test(_comparable(row.get(column))))
        return self

    def eq(self, column, value):
        return self._where(column, lambda v: v == _comparable(value))

    def in_(self, column, values):
        wanted = [_comparable(v) for v in values]
        return self._where(column, lambda v: v in wanted)

    def gt(self, column, value):
        return self._where(column, lambda v: v is not None and v > _comparable(value))

    def gte(self, column, value):
        return self._where(column, lambda v: v is not None and v >= _comparable(value))

    def lt(self, column, value):
        return self._where(column, lambda v: v is not None and v < _comparable(value))

    def lte(self, column, value):
        return self._where(column, lambda v: v is not None and v <= _comparable(value))

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.action, self.payload))

        if self.action == "insert":
            row = {**TABLE_DEFAULTS.get(self.table, {}), **copy.deepcopy(self.payload)}
            row["id"] = self.db.next_id(self.table)
            self.db.tables.setdefault(self.table, []).append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)], count=1)

        if self.action == "update":
            if self.table in self.db.fail_updates:
                raise RuntimeError(f"database unavailable ({self.table})")
            rows = self._matching()
            for row in rows:
                row.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=copy.deepcopy(rows), count=len(rows))

        rows = self._matching()
        if self.order_by:
            column, desc = self.order_by
            rows = sorted(
                rows,
                key=lambda r: (_comparable(r.get(column)) is None, _comparable(r.get(column)), r["id"]),
                reverse=desc,
            )
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        return SimpleNamespace(data=copy.deepcopy(rows), count=len(rows))


class FakeSupabase:
    """In-memory stand-in for the Supabase admin client."""

    def __init__(self):
        self.tables = {}
        self.ids = {}
        self.calls = []
        self.fail_updates = set()

    def next_id(self, table):
        self.ids[table] = self.ids.get(table, 0) + 1
        return self.ids[table]

    def table(self, name):
        return FakeQuery(self, name)

    def seed(self, table, **row):
        row = {**TABLE_DEFAULTS.get(table, {}), **row}
        if "id" not in row:
            row["id"] = self.next_id(table)
        else:
            self.ids[table] = max(self.ids.get(table, 0), row["id"])
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table, **match):
        return [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in match.items())
        ]

    def row(self, table, row_id):
        return next(r for r in self.tables.get(table, []) if r["id"] == row_id)


class FakeProcessor:
    """Stripe adapter double. Set decline_message to make charges fail."""

    def __init__(self):
        self.customers = {}
        self.intents = {}
        self.refunds = []
        self.created_customers = []
        self.charges = []
        self.decline_message = None
        self.capture_error = None
        self.cancel_error = None
        self.fail_customer_creation = False
        self.intent_status = "succeeded"
        self.counter = 0

    def _id(self, prefix):
        self.counter += 1
        return f"{prefix}_test_{self.counter}"

    def add_customer(self, customer_id, default_payment_method=None, cards=None):
        self.customers[customer_id] = {
            "default_payment_method": default_payment_method,
            "cards": cards or [],
        }

    def create_customer(self, email, user_id, name=None, phone=None):
        if self.fail_customer_creation:
            raise ProcessorError("Invalid email address")
        customer_id = self._id("cus")
        self.customers[customer_id] = {"default_payment_method": None, "cards": [], "email": email}
        self.created_customers.append(customer_id)
        return customer_id

    def get_default_payment_method(self, customer_id):
        return self.customers.get(customer_id, {}).get("default_payment_method")

    def list_card_payment_methods(self, customer_id):
        return list(self.customers.get(customer_id, {}).get("cards", []))

    def create_payment_intent(self, amount, customer_id, payment_method_id, description,
                              metadata, capture_method="automatic", idempotency_key=None):
        self.charges.append({
            "amount_cents": to_cents(amount),
            "customer_id": customer_id,
            "payment_method_id": payment_method_id,
            "description": description,
            "metadata": metadata,
            "capture_method": capture_method,
            "idempotency_key": idempotency_key,
        })
        if self.decline_message:
            raise ProcessorError(self.decline_message)

        status = "requires_capture" if capture_method == "manual" else self.intent_status
        intent = SimpleNamespace(id=self._id("pi"), status=status, amount=to_cents(amount))
        self.intents[intent.id] = intent
        return intent

    def capture_payment_intent(self, intent_id):
        if self.capture_error:
            raise ProcessorError(self.capture_error)
        intent = self.intents.setdefault(intent_id, SimpleNamespace(id=intent_id, amount=0, status=""))
        intent.status = "succeeded"
        return intent

    def cancel_payment_intent(self, intent_id):
        if self.cancel_error:
            raise ProcessorError(self.cancel_error)
        intent = self.intents.setdefault(intent_id, SimpleNamespace(id=intent_id, amount=0, status=""))
        intent.status = "canceled"
        return intent

    def create_refund(self, intent_id, amount_cents=None, reason=None):
        intent = self.intents.get(intent_id)
        amount = amount_cents if amount_cents is not None else (intent.amount if intent else 0)
        refund = SimpleNamespace(id=self._id("re"), amount=amount, status="succeeded", reason=reason)
        self.refunds.append(refund)
        return refund


def make_token(user_id, secret=JWT_SECRET, expires_in=timedelta(hours=1)):
    payload = {"userId": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


def seed_world(db):
    """
    Users:
      1 owner, 2 admin with manage_bookings, 3 admin without,
      4 client with Stripe customer + card, 5 client with no Stripe customer,
      6 cleaner
    """
    db.seed("users", id=1, email="owner@example.com", role="OWNER")
    db.seed("users", id=2, email="ops@example.com", role="ADMIN",
            admin_permissions={"manage_bookings": True})
    db.seed("users", id=3, email="pricing@example.com", role="ADMIN",
            admin_permissions={"manage_pricing": True, "manage_bookings": False})
    db.seed("users", id=4, email="jane@example.com", role="CLIENT",
            first_name="Jane", last_name="Doe", phone="555-0100",
            stripe_customer_id="cus_jane")
    db.seed("users", id=5, email="sam@example.com", role="CLIENT",
            first_name="Sam", last_name="Lee")
    db.seed("users", id=6, email="cleaner@example.com", role="CLEANER")


def seed_booking(db, booking_id, client_id=4, scheduled=None, status="CONFIRMED", final_price=150.0, **extra):
    row = {
        "client_id": client_id,
        "cleaner_id": 6,
        "scheduled_date": (scheduled or NOW + timedelta(days=3)).isoformat(),
        "scheduled_time": "10:00 AM",
        "duration_hours": 3,
        "service_type": "Deep Clean",
        "final_price": final_price,
        "status": status,
        "address": "12 Elm Street",
    }
    row.update(extra)
    return db.seed("bookings", id=booking_id, **row)


def seed_payment(db, payment_id, booking_id, amount=150.0, status="failed", is_captured=False, **extra):
    row = {
        "booking_id": booking_id,
        "cleaner_id": 6,
        "amount": amount,
        "status": status,
        "is_captured": is_captured,
        "created_at": (NOW - timedelta(days=1)).isoformat(),
    }
    row.update(extra)
    return db.seed("payments", id=payment_id, **row)


def actor(db, user_id):
    from cleanops.lib.auth import load_user
    return load_user(db, user_id)


def header(title):
    print("\n" + "=" * 60)
    print(f"TEST: {title}")
    print("=" * 60)


def run_suite(title, tests):
    """Run test functions outside pytest and print a summary."""
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)

    results = []
    for test in tests:
        try:
            test()
            results.append((test.__name__, True))
        except AssertionError as e:
            print(f"  ✗ FAIL: {e}")
            results.append((test.__name__, False))

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    for name, ok in results:
        print(f"  {'✓ PASS' if ok else '✗ FAIL'}: {name}")

    passed = sum(1 for _, ok in results if ok)
    print(f"\n  Result: {passed}/{len(results)} tests passed")
    return 0 if passed == len(results) else 1
