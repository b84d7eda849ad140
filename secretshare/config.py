from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"


def _env_str(*names: str) -> Optional[str]:
    """Return the first non-empty value among the given env var names."""
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


@dataclass(frozen=True)
class ProviderCredentials:
    client_id: Optional[str]
    client_secret: Optional[str]

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class AppConfig:
    # Session configuration
    session_secret: Optional[str]  # Required for session signing
    session_ttl_seconds: int
    cookie_secure: bool

    # Callback URLs are derived from this
    public_base_url: str

    # OAuth2 client credentials per provider
    google: ProviderCredentials
    facebook: ProviderCredentials

    # Storage
    store_backend: str  # memory|postgres
    postgres_dsn: Optional[str]

    @property
    def google_callback_url(self) -> str:
        return f"{self.public_base_url}/auth/google/secrets"

    @property
    def facebook_callback_url(self) -> str:
        return f"{self.public_base_url}/oauth2/redirect/facebook"


def build_postgres_dsn() -> Optional[str]:
    dsn = _env_str("POSTGRES_DSN")
    if dsn:
        return dsn
    host = _env_str("POSTGRES_HOST")
    db = _env_str("POSTGRES_DB")
    user = _env_str("POSTGRES_USER")
    password = _env_str("POSTGRES_PASSWORD")
    if not (host and db and user and password):
        return None
    # psycopg's conninfo builder quotes special characters in passwords.
    from psycopg.conninfo import make_conninfo

    return make_conninfo(
        host=host,
        port=_env_int("POSTGRES_PORT", 5432),
        dbname=db,
        user=user,
        password=password,
    )


@lru_cache(maxsize=1)
def load_app_config() -> AppConfig:
    """
    Load application configuration from environment variables.

    Legacy variable names (OUR_SECRET, CLIENT_ID, CLIENT_SECRET) are accepted as fallbacks.
    """
    public_base_url = (_env_str("PUBLIC_BASE_URL") or DEFAULT_PUBLIC_BASE_URL).rstrip("/")

    cookie_secure_env = (os.getenv("COOKIE_SECURE", "") or "").strip().lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when base URL is https; otherwise allow local dev.
        cookie_secure = public_base_url.startswith("https://")

    ttl = _env_int("SESSION_TTL_SECONDS", 43200)  # 12h default
    if ttl <= 60:
        ttl = 60

    postgres_dsn = build_postgres_dsn()
    backend = (_env_str("STORE_BACKEND") or "").lower()
    if backend not in ("memory", "postgres"):
        backend = "postgres" if postgres_dsn else "memory"

    return AppConfig(
        session_secret=_env_str("SESSION_SECRET", "OUR_SECRET"),
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
        public_base_url=public_base_url,
        google=ProviderCredentials(
            client_id=_env_str("GOOGLE_CLIENT_ID", "CLIENT_ID"),
            client_secret=_env_str("GOOGLE_CLIENT_SECRET", "CLIENT_SECRET"),
        ),
        facebook=ProviderCredentials(
            client_id=_env_str("FACEBOOK_CLIENT_ID"),
            client_secret=_env_str("FACEBOOK_CLIENT_SECRET"),
        ),
        store_backend=backend,
        postgres_dsn=postgres_dsn,
    )
