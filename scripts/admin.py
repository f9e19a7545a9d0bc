#!/usr/bin/env python3
"""
Operator utilities for the CleanOps payments backend.

Commands:
    python scripts/admin.py stats                - Show ledger stats
    python scripts/admin.py reconcile [ID]       - Net total vs final price
    python scripts/admin.py payments ID          - List a booking's payments
    python scripts/admin.py holds [--delay-hours N]  - Place upcoming payment holds
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv


def cmd_stats(args):
    """Show payment ledger statistics."""
    from cleanops.db import get_admin_client

    client = get_admin_client()

    print("\n📊 Ledger Statistics")
    print("=" * 40)

    bookings = client.table("bookings").select("id", count="exact").execute()
    print(f"Bookings: {bookings.count or 0}")

    for status in ["requires_capture", "succeeded", "failed", "canceled", "requires_payment_method"]:
        rows = (
            client.table("payments")
            .select("id", count="exact")
            .eq("status", status)
            .execute()
        )
        print(f"  {status:25} {rows.count or 0}")


def cmd_reconcile(args):
    """Compare visible net totals with final prices."""
    from cleanops.db import fetch_reconciliation, get_postgres_connection

    print("\n🧾 Ledger Reconciliation")
    print("=" * 60)

    with get_postgres_connection() as conn:
        rows = fetch_reconciliation(conn, args.id)

    mismatched = 0
    for row in rows:
        final_price = row["final_price"]
        net = round(row["net_total"] or 0, 2)
        ok = final_price is not None and round(final_price, 2) == net
        if not ok:
            mismatched += 1
        if ok and args.id is None:
            continue
        mark = "✓" if ok else "✗"
        print(f"  {mark} Booking #{row['id']:6} final={final_price} net={net} ({row['payment_count']} payments)")

    print(f"\n{len(rows)} bookings checked, {mismatched} mismatched")


def cmd_payments(args):
    """List every payment row for a booking."""
    from cleanops.db import fetch_booking_payments, get_postgres_connection

    with get_postgres_connection() as conn:
        rows = fetch_booking_payments(conn, args.id)

    print(f"\n💳 Payments for Booking #{args.id}")
    print("=" * 60)
    for row in rows:
        captured = "captured" if row["is_captured"] else "-"
        print(f"  #{row['id']:6} {row['amount']:>9.2f} {row['status'] or '':25} {captured:9} {row['description'] or ''}")


def cmd_holds(args):
    """Place manual-capture holds on bookings inside the hold window."""
    from cleanops.lib import PaymentService

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    result = PaymentService().place_payment_holds(delay_hours=args.delay_hours)

    print("\n🔒 Payment Holds")
    print("=" * 40)
    print(f"Processed: {result['processed']}")
    print(f"Placed:    {result['success']}")
    print(f"Skipped:   {result['skipped']}")
    print(f"Failed:    {result['failed']}")
    for error in result["errors"]:
        print(f"  ✗ {error}")


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Operator utilities")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("stats", help="Show ledger statistics")

    reconcile_parser = subparsers.add_parser("reconcile", help="Net total vs final price")
    reconcile_parser.add_argument("id", type=int, nargs="?", help="Booking ID (all bookings if omitted)")

    payments_parser = subparsers.add_parser("payments", help="List a booking's payments")
    payments_parser.add_argument("id", type=int, help="Booking ID")

    holds_parser = subparsers.add_parser("holds", help="Place upcoming payment holds")
    holds_parser.add_argument("--delay-hours", type=int, default=None, help="Override configured hold window")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    commands = {
        "stats": cmd_stats,
        "reconcile": cmd_reconcile,
        "payments": cmd_payments,
        "holds": cmd_holds,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
