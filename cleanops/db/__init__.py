from .schema import SCHEMA_SQL, INDEXES_SQL, RECONCILIATION_SQL
from .client import get_admin_client
from .postgres import (
    get_postgres_connection,
    get_database_url,
    fetch_reconciliation,
    fetch_booking_payments,
)

__all__ = [
    "SCHEMA_SQL",
    "INDEXES_SQL",
    "RECONCILIATION_SQL",
    "get_admin_client",
    "get_postgres_connection",
    "get_database_url",
    "fetch_reconciliation",
    "fetch_booking_payments",
]
