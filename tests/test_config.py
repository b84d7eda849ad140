from __future__ import annotations

import pytest

from secretshare.config import load_app_config

_ENV = (
    "SESSION_SECRET",
    "OUR_SECRET",
    "SESSION_TTL_SECONDS",
    "COOKIE_SECURE",
    "PUBLIC_BASE_URL",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "FACEBOOK_CLIENT_ID",
    "FACEBOOK_CLIENT_SECRET",
    "STORE_BACKEND",
    "POSTGRES_DSN",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


def test_defaults() -> None:
    cfg = load_app_config()
    assert cfg.session_secret is None
    assert cfg.session_ttl_seconds == 43200
    assert cfg.cookie_secure is False
    assert cfg.public_base_url == "http://localhost:3000"
    assert cfg.google_callback_url == "http://localhost:3000/auth/google/secrets"
    assert cfg.facebook_callback_url == "http://localhost:3000/oauth2/redirect/facebook"
    assert cfg.google.enabled is False
    assert cfg.facebook.enabled is False
    assert cfg.store_backend == "memory"
    assert cfg.postgres_dsn is None


def test_legacy_variable_names_are_accepted(monkeypatch) -> None:
    monkeypatch.setenv("OUR_SECRET", "legacy-secret")
    monkeypatch.setenv("CLIENT_ID", "gid")
    monkeypatch.setenv("CLIENT_SECRET", "gsecret")
    cfg = load_app_config()
    assert cfg.session_secret == "legacy-secret"
    assert cfg.google.client_id == "gid"
    assert cfg.google.enabled is True


def test_https_base_url_defaults_to_secure_cookies(monkeypatch) -> None:
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://secrets.example.com/")
    cfg = load_app_config()
    assert cfg.cookie_secure is True
    assert cfg.google_callback_url == "https://secrets.example.com/auth/google/secrets"

    load_app_config.cache_clear()
    monkeypatch.setenv("COOKIE_SECURE", "false")
    assert load_app_config().cookie_secure is False


def test_ttl_floor(monkeypatch) -> None:
    monkeypatch.setenv("SESSION_TTL_SECONDS", "5")
    assert load_app_config().session_ttl_seconds == 60


def test_postgres_backend_selected_by_dsn(monkeypatch) -> None:
    monkeypatch.setenv("POSTGRES_DSN", "postgresql://u:p@db/secrets")
    cfg = load_app_config()
    assert cfg.store_backend == "postgres"
    assert cfg.postgres_dsn == "postgresql://u:p@db/secrets"

    load_app_config.cache_clear()
    monkeypatch.setenv("STORE_BACKEND", "memory")
    assert load_app_config().store_backend == "memory"


def test_build_store_requires_dsn_for_postgres(monkeypatch, config_factory) -> None:
    from secretshare.store import build_store
    from secretshare.store.memory_store import MemoryUserStore

    assert isinstance(build_store(config_factory()), MemoryUserStore)
    with pytest.raises(ValueError):
        build_store(config_factory(store_backend="postgres", postgres_dsn=None))
