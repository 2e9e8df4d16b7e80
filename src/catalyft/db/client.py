"""Supabase client construction.

Handlers run with the service-role key, which bypasses row level security.
Ownership checks are therefore done in the services, against the user id
resolved from the caller's bearer token.
"""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import get_settings
from ..exceptions import DatabaseError


logger = logging.getLogger(__name__)


@lru_cache
def get_supabase_client() -> Client:
    """Get the cached service-role Supabase client."""
    settings = get_settings()
    url = settings.supabase_url
    key = settings.supabase_service_role_key or settings.supabase_anon_key

    if not url or not key:
        raise DatabaseError(
            "Supabase is not configured",
            operation="connect",
            details={"configuration_missing": "supabase_url/supabase_service_role_key"},
        )

    logger.info(f"Connecting to Supabase at {url}")
    return create_client(url, key)
