"""
Row loaders shared by the booking and payment services.
"""

from typing import Dict, Iterable, Optional

from ..models import Booking, User


def fetch_booking(client, booking_id: int) -> Optional[Booking]:
    result = (
        client.table("bookings")
        .select("*")
        .eq("id", booking_id)
        .limit(1)
        .execute()
    )
    return Booking.model_validate(result.data[0]) if result.data else None


def fetch_bookings(client, booking_ids: Iterable[int]) -> Dict[int, Booking]:
    ids = sorted({i for i in booking_ids if i is not None})
    if not ids:
        return {}

    result = client.table("bookings").select("*").in_("id", ids).execute()
    return {row["id"]: Booking.model_validate(row) for row in result.data or []}


def fetch_users(client, user_ids: Iterable[int]) -> Dict[int, User]:
    ids = sorted({i for i in user_ids if i is not None})
    if not ids:
        return {}

    result = client.table("users").select("*").in_("id", ids).execute()
    return {row["id"]: User.model_validate(row) for row in result.data or []}


def client_summary(user: Optional[User]) -> Optional[dict]:
    """Just the contact fields the admin tables show."""
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
    }


def matches_search(term: Optional[str], booking: Booking, client: Optional[User]) -> bool:
    """Case-insensitive match on client name, email, phone or booking address."""
    if not term or not term.strip():
        return True

    needle = term.strip().lower()
    haystack = [booking.address]
    if client:
        haystack += [client.first_name, client.last_name, client.email, client.phone]

    return any(needle in value.lower() for value in haystack if value)
