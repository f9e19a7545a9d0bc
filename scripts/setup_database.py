#!/usr/bin/env python3
"""
Print the database schema.
Run the output once in the Supabase SQL editor.

Usage:
    python scripts/setup_database.py
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def print_schema():
    from cleanops.db.schema import SCHEMA_SQL, INDEXES_SQL

    print("=" * 60)
    print("DATABASE SCHEMA")
    print("=" * 60)
    print("\nCopy and paste this SQL into Supabase SQL Editor:\n")
    print("-" * 60)
    print(SCHEMA_SQL)
    print("-" * 60)
    print("\nINDEXES:")
    print("-" * 60)
    print(INDEXES_SQL)
    print("-" * 60)


def main():
    print("CleanOps Payments - Database Setup")
    print("=" * 40)
    print()
    print_schema()
    print()
    print("Next steps:")
    print("1. Open the SQL Editor in your Supabase project")
    print("2. Paste the schema SQL above and run it")
    print("3. Insert the configuration row, or let the first PUT /admin/configuration create it")
    print("4. Schedule: python scripts/admin.py holds")


if __name__ == "__main__":
    main()
