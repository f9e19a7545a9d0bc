"""
Business configuration.
A single row: cancellation policy and payment hold timing.
"""

from typing import Optional

from ..db import get_admin_client
from ..models import AdminPermission, Configuration, User
from .auth import authorize


class ConfigurationService:
    """Reads and updates the configuration singleton."""

    def __init__(self, client=None):
        self.client = client or get_admin_client()

    def _fetch(self) -> Optional[dict]:
        result = (
            self.client.table("configuration")
            .select("*")
            .order("id")
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def get(self) -> Configuration:
        """Stored configuration, or the defaults if none saved yet."""
        row = self._fetch()
        return Configuration.model_validate(row) if row else Configuration()

    def update(self, actor: User, **fields) -> Configuration:
        """Owners, or admins with manage_pricing. Creates the row if missing."""
        authorize(actor, AdminPermission.MANAGE_PRICING)

        changes = {k: v for k, v in fields.items() if v is not None}
        existing = self._fetch()

        if existing:
            if not changes:
                return Configuration.model_validate(existing)
            result = (
                self.client.table("configuration")
                .update(changes)
                .eq("id", existing["id"])
                .execute()
            )
        else:
            row = Configuration(**changes).model_dump(exclude={"id"})
            result = self.client.table("configuration").insert(row).execute()

        return Configuration.model_validate(result.data[0])
