from __future__ import annotations

from typing import Optional

from fastapi import Request

from secretshare.auth.models import AuthUser
from secretshare.auth.session import session_cookie_name


def authenticate_request(request: Request) -> Optional[AuthUser]:
    """
    Authenticate a request and return an AuthUser if its session cookie is valid.

    Missing, tampered, expired or logged-out sessions all resolve to None (anonymous).
    """
    ctx = request.app.state.context
    return ctx.sessions.resolve(request.cookies.get(session_cookie_name(ctx.config)))


def current_user(request: Request) -> Optional[AuthUser]:
    """Identity attached by the request middleware (None for anonymous visitors)."""
    return getattr(request.state, "user", None)
