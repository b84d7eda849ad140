"""
Pytest config.

Tests import the local `secretshare/` package straight from the repo root, so the
root is pinned on sys.path here in case the project is not installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from secretshare.config import AppConfig, ProviderCredentials, load_app_config  # noqa: E402

TEST_SESSION_SECRET = "test-secret-key-for-testing-purposes-only"


@pytest.fixture(autouse=True)
def _fast_bcrypt_and_fresh_config(monkeypatch: pytest.MonkeyPatch):
    """Cheap bcrypt rounds for unit tests; never reuse config cached by another test."""
    monkeypatch.setattr("secretshare.auth.local.BCRYPT_ROUNDS", 4)
    load_app_config.cache_clear()
    yield
    load_app_config.cache_clear()


def make_config(**overrides) -> AppConfig:
    values = dict(
        session_secret=TEST_SESSION_SECRET,
        session_ttl_seconds=3600,
        cookie_secure=False,
        public_base_url="http://localhost:3000",
        google=ProviderCredentials(client_id="google-client-id", client_secret="google-client-secret"),
        facebook=ProviderCredentials(client_id="facebook-client-id", client_secret="facebook-client-secret"),
        store_backend="memory",
        postgres_dsn=None,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def app_config() -> AppConfig:
    return make_config()


@pytest.fixture
def store():
    from secretshare.store.memory_store import MemoryUserStore

    return MemoryUserStore()


@pytest.fixture
def context(app_config, store):
    from secretshare.api.context import AppContext

    return AppContext.from_config(app_config, store=store)


@pytest.fixture
def client(context):
    from fastapi.testclient import TestClient

    from secretshare.api.app import create_app

    with TestClient(create_app(context), follow_redirects=False) as c:
        yield c
