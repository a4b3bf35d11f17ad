"""
Runtime configuration.

Values come from the environment, after loading the `.env` file that sits in
the project root. Settings are read once per process via `get_settings()`.

Environment variables:
- APP_ENVIRONMENT: development (default), staging or production
- STORAGE_BACKEND: memory (default) or supabase
- SUPABASE_URL / SUPABASE_KEY: required when STORAGE_BACKEND=supabase
- SESSION_SECRET: HMAC secret for session tokens (required in production)
- SESSION_TTL_HOURS: session token lifetime (default 8)
- SESSION_COOKIE_NAME: cookie carrying the session token (default "session")
- USER_ID_HEADER: fallback subject header (default "X-User-Id")
"""

from __future__ import annotations

import os
import secrets
import warnings
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_PRODUCTION_ENVIRONMENTS = ("production", "prod")
_STORAGE_BACKENDS = ("memory", "supabase")


@dataclass(frozen=True, slots=True)
class Settings:
    environment: str
    storage_backend: str
    supabase_url: str | None
    supabase_key: str | None
    session_secret: str
    session_ttl_hours: int
    session_cookie_name: str
    user_id_header: str

    @property
    def is_production(self) -> bool:
        return self.environment in _PRODUCTION_ENVIRONMENTS


def _session_secret(environment: str) -> str:
    secret = os.getenv("SESSION_SECRET")
    if secret:
        if len(secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters")
        return secret

    if environment in _PRODUCTION_ENVIRONMENTS:
        raise RuntimeError(
            "Missing environment variable: SESSION_SECRET. "
            "It is required in production to sign session tokens."
        )
    # Unique per process: sessions do not survive a restart in development.
    warnings.warn(
        "SESSION_SECRET not set - using a generated development secret.",
        UserWarning,
    )
    return f"dev-only-{secrets.token_hex(32)}"


def load_settings() -> Settings:
    """Build Settings from the current environment."""

    environment = os.getenv("APP_ENVIRONMENT", "development").strip().lower()
    storage_backend = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
    if storage_backend not in _STORAGE_BACKENDS:
        raise RuntimeError(
            f"Invalid STORAGE_BACKEND '{storage_backend}'. "
            f"Expected one of: {', '.join(_STORAGE_BACKENDS)}."
        )

    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")
    if storage_backend == "supabase":
        if not supabase_url:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_URL. "
                "Set SUPABASE_URL to your Supabase project URL."
            )
        if not supabase_key:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_KEY. "
                "Set SUPABASE_KEY to your Supabase API key."
            )

    try:
        ttl_hours = int(os.getenv("SESSION_TTL_HOURS", "8"))
    except ValueError:
        raise RuntimeError("SESSION_TTL_HOURS must be an integer") from None

    return Settings(
        environment=environment,
        storage_backend=storage_backend,
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        session_secret=_session_secret(environment),
        session_ttl_hours=ttl_hours,
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "session"),
        user_id_header=os.getenv("USER_ID_HEADER", "X-User-Id"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = ["Settings", "get_settings", "load_settings"]
