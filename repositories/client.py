"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is built
lazily from Settings so that the in-memory backend (tests, local development)
never needs Supabase credentials.
"""

from __future__ import annotations

from functools import lru_cache

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import Settings, get_settings


def create_supabase_client(settings: Settings) -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError(
            "Supabase storage requires SUPABASE_URL and SUPABASE_KEY to be set."
        )
    return create_client(settings.supabase_url, settings.supabase_key)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Process-wide Supabase client for the configured project."""

    return create_supabase_client(get_settings())


__all__ = ["create_supabase_client", "get_supabase"]
