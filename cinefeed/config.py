"""
Runtime configuration for CineFeed.

All settings come from environment variables and are collected into one
explicitly constructed ``Settings`` object that is handed to ``create_app``.
Nothing here is cached at module level.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional

TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"

# Upstream caps page depth at 500; deeper pages cannot be fetched.
MAX_UPSTREAM_PAGES = 500


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Application settings."""

    tmdb_api_key: Optional[str] = None
    tmdb_base_url: str = TMDB_BASE_URL
    tmdb_image_base_url: str = TMDB_IMAGE_BASE_URL
    proxy_timeout: float = 15.0
    enforce_allowlist: bool = True
    user_agent: str = "CineFeed/1.0"
    secret_key: str = "dev-secret-key-change-in-production"
    session_timeout_minutes: int = 60
    auth_backend: str = "demo"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Environment variables:
        - TMDB_API_KEY: upstream credential injected by the proxy
        - TMDB_BASE_URL / TMDB_IMAGE_BASE_URL: upstream hosts
        - PROXY_TIMEOUT: upstream timeout in seconds (default: 15)
        - PROXY_ENFORCE_ALLOWLIST: restrict forwarded endpoints (default: on)
        - SECRET_KEY: Flask cookie signing key
        - SESSION_TIMEOUT_MINUTES: idle session lifetime (default: 60)
        - AUTH_BACKEND: 'demo' or 'supabase'
        - SUPABASE_URL / SUPABASE_ANON_KEY: used by the supabase backend
        - LOG_LEVEL
        """
        return cls(
            tmdb_api_key=os.getenv("TMDB_API_KEY") or None,
            tmdb_base_url=os.getenv("TMDB_BASE_URL", TMDB_BASE_URL).rstrip("/"),
            tmdb_image_base_url=os.getenv("TMDB_IMAGE_BASE_URL", TMDB_IMAGE_BASE_URL).rstrip("/"),
            proxy_timeout=float(os.getenv("PROXY_TIMEOUT", "15")),
            enforce_allowlist=_env_flag("PROXY_ENFORCE_ALLOWLIST", True),
            secret_key=os.getenv("SECRET_KEY", "dev-secret-key-change-in-production"),
            session_timeout_minutes=int(os.getenv("SESSION_TIMEOUT_MINUTES", "60")),
            auth_backend=os.getenv("AUTH_BACKEND", "demo").strip().lower(),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with some fields replaced (handy in tests)."""
        return replace(self, **changes)
