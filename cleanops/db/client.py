"""
Supabase client configuration.

Everything here runs with the service role key (bypasses RLS):
- Admin payment and booking services
- Scheduled hold placement
- Operator scripts

Permission checks happen in the services, not in RLS.
"""

import os
from functools import lru_cache
from supabase import create_client, Client


@lru_cache()
def get_admin_client() -> Client:
    """Get Supabase client with service role key."""
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_KEY")

    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

    return create_client(url, key)
