from __future__ import annotations

import time

import pytest

from secretshare.auth.models import AuthUser
from secretshare.auth.session import (
    SessionManager,
    clear_session_cookie_kwargs,
    session_cookie_kwargs,
    session_cookie_name,
)
from secretshare.errors import SessionDecodeError


def _user() -> AuthUser:
    return AuthUser(id="u1", provider="local", username="alice")


def test_create_and_resolve_session(app_config) -> None:
    mgr = SessionManager(app_config)
    value = mgr.create(_user())
    assert value
    # The cookie carries an opaque token, not the identity.
    assert "alice" not in value
    assert mgr.resolve(value) == _user()


def test_missing_or_tampered_cookie_is_anonymous(app_config) -> None:
    mgr = SessionManager(app_config)
    value = mgr.create(_user())
    assert mgr.resolve(None) is None
    assert mgr.resolve("") is None
    assert mgr.resolve(value + "x") is None
    assert mgr.resolve("garbage") is None


def test_cookie_signed_with_other_secret_is_rejected(app_config, config_factory) -> None:
    other = SessionManager(config_factory(session_secret="some-other-secret"))
    mgr = SessionManager(app_config)
    with pytest.raises(SessionDecodeError):
        mgr.decode_token(other.create(_user()))


def test_destroy_ends_session(app_config) -> None:
    mgr = SessionManager(app_config)
    value = mgr.create(_user())
    assert len(mgr) == 1
    mgr.destroy(value)
    assert len(mgr) == 0
    assert mgr.resolve(value) is None
    # Destroying twice (or garbage) is harmless.
    mgr.destroy(value)
    mgr.destroy("garbage")


def test_expired_session_is_anonymous(app_config, monkeypatch) -> None:
    mgr = SessionManager(app_config)
    value = mgr.create(_user())
    later = time.time() + app_config.session_ttl_seconds + 5
    monkeypatch.setattr(time, "time", lambda: later)
    assert mgr.resolve(value) is None


def test_sessions_disabled_without_secret(config_factory) -> None:
    mgr = SessionManager(config_factory(session_secret=None))
    assert mgr.enabled is False
    assert mgr.create(_user()) is None
    assert mgr.resolve("anything") is None


def test_cookie_kwargs(app_config, config_factory) -> None:
    kw = session_cookie_kwargs(app_config, "v")
    assert kw["key"] == "secretshare_session"
    assert kw["httponly"] is True
    assert kw["max_age"] == app_config.session_ttl_seconds
    assert clear_session_cookie_kwargs(app_config)["max_age"] == 0

    secure = config_factory(cookie_secure=True)
    assert session_cookie_name(secure) == "__Host-secretshare_session"
    assert session_cookie_kwargs(secure, "v")["secure"] is True
