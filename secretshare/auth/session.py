from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from secretshare.auth.models import AuthUser
from secretshare.auth.util import random_token
from secretshare.config import AppConfig
from secretshare.errors import SessionDecodeError

logger = logging.getLogger(__name__)

SESSION_SALT = "secretshare-session-v1"


def session_cookie_name(cfg: AppConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-secretshare_session" if cfg.cookie_secure else "secretshare_session"


def session_cookie_kwargs(cfg: AppConfig, value: str) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def clear_session_cookie_kwargs(cfg: AppConfig) -> dict:
    return {**session_cookie_kwargs(cfg, ""), "max_age": 0}


@dataclass
class _Entry:
    user: AuthUser
    expires_at: float


class SessionManager:
    """
    Server-held sessions.

    The cookie carries only a random token, signed with the session secret;
    the identity itself stays in process memory and disappears on restart,
    logout or expiry.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self._cfg = cfg
        self._sessions: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._serializer = (
            URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT) if cfg.session_secret else None
        )

    @property
    def enabled(self) -> bool:
        return self._serializer is not None

    def create(self, user: AuthUser) -> Optional[str]:
        """Start a session for `user` and return the cookie value (None if signing is not configured)."""
        if self._serializer is None:
            return None
        token = random_token(32)
        with self._lock:
            self._purge_expired()
            self._sessions[token] = _Entry(user=user, expires_at=time.time() + self._cfg.session_ttl_seconds)
        return self._serializer.dumps(token)

    def decode_token(self, value: str) -> str:
        """Verify the cookie signature and age, returning the raw session token."""
        if self._serializer is None:
            raise SessionDecodeError("Session signing is not configured")
        try:
            token = self._serializer.loads(value, max_age=self._cfg.session_ttl_seconds)
        except (BadSignature, BadTimeSignature) as e:
            raise SessionDecodeError(str(e)) from e
        if not isinstance(token, str) or not token:
            raise SessionDecodeError("Malformed session token")
        return token

    def resolve(self, value: Optional[str]) -> Optional[AuthUser]:
        """Map a cookie value to the session identity; anything invalid or expired is anonymous."""
        if not value:
            return None
        try:
            token = self.decode_token(value)
        except SessionDecodeError as e:
            logger.debug("Ignoring session cookie: %s", e)
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            if entry.expires_at <= time.time():
                del self._sessions[token]
                return None
            return entry.user

    def destroy(self, value: Optional[str]) -> None:
        if not value:
            return
        try:
            token = self.decode_token(value)
        except SessionDecodeError:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _purge_expired(self) -> None:
        now = time.time()
        for token in [t for t, e in self._sessions.items() if e.expires_at <= now]:
            del self._sessions[token]
