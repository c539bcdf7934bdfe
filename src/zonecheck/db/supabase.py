"""Supabase client for the warehouse read model."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings


def is_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_key)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not is_configured():
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None
    return create_client(settings.supabase_url, settings.supabase_key)
