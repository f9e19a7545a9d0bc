"""
Database schema for the CleanOps payments backend.
Postgres (Supabase).

Tables:
- users: clients, cleaners, admins, owners + Stripe customer reference
- bookings: scheduled jobs; stored status only (effective status is derived)
- payments: append-only ledger of charge attempts per booking
- configuration: single row of business settings

Key design decisions:
1. Amounts are dollars in double precision; Stripe gets integer cents
2. A retry inserts a new payment row; the failed row is never rewritten
3. payments.version guards against two retries claiming the same row
"""

SCHEMA_SQL = """
-- Users
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    phone TEXT,
    role TEXT NOT NULL DEFAULT 'CLIENT' CHECK (
        role IN ('CLIENT', 'CLEANER', 'ADMIN', 'OWNER')
    ),
    admin_permissions JSONB, -- permission key -> boolean, ADMIN only
    stripe_customer_id TEXT UNIQUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Bookings
CREATE TABLE IF NOT EXISTS bookings (
    id SERIAL PRIMARY KEY,
    client_id INTEGER REFERENCES users(id) NOT NULL,
    cleaner_id INTEGER REFERENCES users(id),
    scheduled_date TIMESTAMPTZ NOT NULL,
    scheduled_time TEXT NOT NULL,
    duration_hours DOUBLE PRECISION,
    service_type TEXT NOT NULL,
    service_frequency TEXT NOT NULL DEFAULT 'ONE_TIME' CHECK (
        service_frequency IN ('ONE_TIME', 'WEEKLY', 'BIWEEKLY', 'MONTHLY')
    ),
    final_price DOUBLE PRECISION, -- null until quoted
    status TEXT NOT NULL DEFAULT 'PENDING' CHECK (
        status IN ('PENDING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')
    ),
    payment_method TEXT,
    payment_details TEXT, -- free-text audit trail
    special_instructions TEXT,
    address TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Payments
-- One row per attempt. Retries reference the row they retry.
CREATE TABLE IF NOT EXISTS payments (
    id SERIAL PRIMARY KEY,
    booking_id INTEGER REFERENCES bookings(id) ON DELETE CASCADE,
    cleaner_id INTEGER REFERENCES users(id),
    amount DOUBLE PRECISION NOT NULL,
    status TEXT, -- Stripe payment intent status, or pending / processing
    is_captured BOOLEAN NOT NULL DEFAULT FALSE,
    stripe_payment_intent_id TEXT,
    stripe_payment_method_id TEXT,
    description TEXT,
    retry_of_payment_id INTEGER REFERENCES payments(id),
    version INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    paid_at TIMESTAMPTZ -- set only once funds are collected
);

-- Business configuration (single row)
CREATE TABLE IF NOT EXISTS configuration (
    id SERIAL PRIMARY KEY,
    cancellation_window_hours INTEGER NOT NULL DEFAULT 48,
    cancellation_fee_amount DOUBLE PRECISION NOT NULL DEFAULT 50.0,
    payment_hold_delay_hours INTEGER,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Service role only; no client-facing access to these tables
ALTER TABLE payments ENABLE ROW LEVEL SECURITY;
ALTER TABLE configuration ENABLE ROW LEVEL SECURITY;
"""

INDEXES_SQL = """
-- Performance indexes
CREATE INDEX IF NOT EXISTS idx_users_stripe_customer ON users(stripe_customer_id);
CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

CREATE INDEX IF NOT EXISTS idx_bookings_client ON bookings(client_id);
CREATE INDEX IF NOT EXISTS idx_bookings_scheduled ON bookings(scheduled_date);
CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(status);

CREATE INDEX IF NOT EXISTS idx_payments_booking ON payments(booking_id);
CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(status);
CREATE INDEX IF NOT EXISTS idx_payments_retry_of ON payments(retry_of_payment_id);
CREATE INDEX IF NOT EXISTS idx_payments_open_holds ON payments(booking_id)
    WHERE is_captured = FALSE AND status = 'requires_capture';
"""

# Net total vs final price for every booking that has any payments.
# A booking whose visible total differs from its price is a ledger problem.
RECONCILIATION_SQL = """
SELECT b.id,
       b.final_price,
       COALESCE(SUM(p.amount) FILTER (
           WHERE p.is_captured = TRUE AND p.status = 'succeeded'
       ), 0) AS net_total,
       COUNT(p.id) AS payment_count
FROM bookings b
JOIN payments p ON p.booking_id = b.id
WHERE (%(booking_id)s::int IS NULL OR b.id = %(booking_id)s::int)
GROUP BY b.id, b.final_price
ORDER BY b.id;
"""

BOOKING_PAYMENTS_SQL = """
SELECT id, amount, status, is_captured, created_at, paid_at,
       stripe_payment_intent_id, description
FROM payments
WHERE booking_id = %s
ORDER BY created_at DESC;
"""
