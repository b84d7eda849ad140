from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Query, Request
from fastapi.responses import RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from secretshare.api.context import AppContext, get_context
from secretshare.auth import local as local_auth
from secretshare.auth import oauth
from secretshare.auth.deps import authenticate_request, current_user
from secretshare.auth.models import AuthUser
from secretshare.auth.session import clear_session_cookie_kwargs, session_cookie_kwargs, session_cookie_name
from secretshare.auth.util import random_token
from secretshare.errors import AuthorizationFailed, DuplicateUsername, InvalidCredentials, PersistenceError
from secretshare.store.base import User

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))

router = APIRouter()

_OAUTH_STATE_COOKIE = "secretshare_oauth_state"
_OAUTH_TTL_SECONDS = 10 * 60


def _oauth_cookie_kwargs(ctx: AppContext, *, value: str, max_age: int) -> dict:
    return {
        "key": _OAUTH_STATE_COOKIE,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": ctx.config.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def _redirect(url: str) -> RedirectResponse:
    resp = RedirectResponse(url=url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _render(request: Request, name: str, context: Optional[Dict[str, Any]] = None, status_code: int = 200) -> Response:
    ctx = {"user": current_user(request)}
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


def _render_error(request: Request, message: str, status_code: int) -> Response:
    return _render(request, "error.html", {"message": message}, status_code=status_code)


def _provider_flags(ctx: AppContext) -> Dict[str, bool]:
    return {"google_enabled": ctx.config.google.enabled, "facebook_enabled": ctx.config.facebook.enabled}


def _start_session(request: Request, ctx: AppContext, user: User, provider: str, picture: Optional[str] = None) -> Response:
    """Anonymous -> Authenticated: store the identity server-side and hand out the cookie."""
    identity = AuthUser(id=user.id, provider=provider, username=user.username, picture=picture)
    # Drop any session the browser already held.
    ctx.sessions.destroy(request.cookies.get(session_cookie_name(ctx.config)))
    session_value = ctx.sessions.create(identity)
    if not session_value:
        logger.error("Cannot start session: SESSION_SECRET is not configured")
        return _render_error(request, "Sign-in is unavailable: sessions are not configured.", 500)

    resp = _redirect("/secrets")
    resp.set_cookie(**session_cookie_kwargs(ctx.config, session_value))
    return resp


# ---- Pages ----


@router.get("/")
def home(request: Request) -> Response:
    return _render(request, "home.html")


@router.get("/login")
def login_form(request: Request, error: int = Query(0), ctx: AppContext = Depends(get_context)) -> Response:
    return _render(request, "login.html", {"error": bool(error), **_provider_flags(ctx)})


@router.get("/register")
def register_form(request: Request, error: int = Query(0), ctx: AppContext = Depends(get_context)) -> Response:
    return _render(request, "register.html", {"error": bool(error), **_provider_flags(ctx)})


@router.get("/secrets")
def secrets(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    users = ctx.store.list_with_secrets()
    return _render(request, "secrets.html", {"users_with_secrets": users})


@router.get("/submit")
def submit_form(request: Request) -> Response:
    if current_user(request) is None:
        return _redirect("/login")
    return _render(request, "submit.html")


@router.get("/logout")
def logout(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    """Authenticated -> Anonymous: forget the server-side entry and expire the cookie."""
    ctx.sessions.destroy(request.cookies.get(session_cookie_name(ctx.config)))
    resp = _redirect("/")
    resp.set_cookie(**clear_session_cookie_kwargs(ctx.config))
    return resp


# ---- Local authentication ----


@router.post("/register")
def register(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    ctx: AppContext = Depends(get_context),
) -> Response:
    username = username.strip()
    if not username or not password:
        logger.info("Registration rejected: missing username or password")
        return _redirect("/register?error=1")
    try:
        user = local_auth.register(ctx.store, username, password)
    except DuplicateUsername:
        logger.info("Registration rejected: username already taken")
        return _redirect("/register?error=1")
    return _start_session(request, ctx, user, "local")


@router.post("/login")
def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    ctx: AppContext = Depends(get_context),
) -> Response:
    username = username.strip()
    if not username or not password:
        return _redirect("/login?error=1")
    try:
        user = local_auth.login(ctx.store, username, password)
    except InvalidCredentials:
        return _redirect("/login?error=1")
    return _start_session(request, ctx, user, "local")


# ---- Federated authentication ----


def _begin_federated(request: Request, ctx: AppContext, provider_name: str) -> Response:
    provider = oauth.get_provider(provider_name)
    state = random_token(32)
    try:
        url = oauth.build_authorize_url(ctx.config, provider, state=state)
    except AuthorizationFailed as e:
        logger.warning("%s", e)
        return _redirect("/login?error=1")

    resp = _redirect(url)
    resp.set_cookie(**_oauth_cookie_kwargs(ctx, value=state, max_age=_OAUTH_TTL_SECONDS))
    return resp


def _complete_federated(
    request: Request,
    ctx: AppContext,
    provider_name: str,
    *,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
) -> Response:
    provider = oauth.get_provider(provider_name)
    try:
        user, profile = oauth.complete_auth(
            ctx.config,
            ctx.store,
            provider,
            code=code,
            state=state,
            expected_state=(request.cookies.get(_OAUTH_STATE_COOKIE) or "").strip() or None,
            error=error,
        )
    except AuthorizationFailed as e:
        logger.warning("%s", e)
        resp = _redirect("/login")
    else:
        picture = str(profile.get("picture") or "").strip() or None
        resp = _start_session(request, ctx, user, provider.name, picture=picture)
    resp.set_cookie(**_oauth_cookie_kwargs(ctx, value="", max_age=0))
    return resp


@router.get("/auth/google")
def auth_google(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    return _begin_federated(request, ctx, "google")


@router.get("/auth/google/secrets")
def auth_google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    ctx: AppContext = Depends(get_context),
) -> Response:
    return _complete_federated(request, ctx, "google", code=code, state=state, error=error)


@router.get("/auth/facebook")
@router.get("/login/federated/facebook")
def auth_facebook(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    return _begin_federated(request, ctx, "facebook")


@router.get("/oauth2/redirect/facebook")
def auth_facebook_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    ctx: AppContext = Depends(get_context),
) -> Response:
    return _complete_federated(request, ctx, "facebook", code=code, state=state, error=error)


# ---- Secret submission ----


@router.post("/submit")
def submit(request: Request, secret: str = Form(""), ctx: AppContext = Depends(get_context)) -> Response:
    user = current_user(request)
    if user is None:
        return _redirect("/login")
    if not secret:
        return _redirect("/submit")

    if not ctx.store.set_secret(user.id, secret):
        # Session outlived its user record.
        logger.warning("Secret submission for missing user id=%s; ending session", user.id)
        ctx.sessions.destroy(request.cookies.get(session_cookie_name(ctx.config)))
        resp = _redirect("/login")
        resp.set_cookie(**clear_session_cookie_kwargs(ctx.config))
        return resp
    return _redirect("/secrets")


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the web app around an explicitly constructed context (config + store + sessions)."""
    ctx = context or AppContext.from_config()

    app = FastAPI(title="SecretShare", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.context = ctx
    app.mount("/static", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="static")
    app.include_router(router)

    @app.on_event("startup")
    def _startup_open_context() -> None:
        ctx.open()

    @app.on_event("shutdown")
    def _shutdown_close_context() -> None:
        ctx.close()

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError) -> Response:
        logger.error("%s %s - storage error: %s", request.method, request.url.path, exc, exc_info=exc)
        return _render_error(request, "The service is temporarily unavailable. Please try again.", 503)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Resolve the session identity, then log the request."""
        start_time = time.time()
        try:
            if not request.url.path.startswith("/static/"):
                request.state.user = authenticate_request(request)
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise

    return app


def run(host: str = "0.0.0.0", port: int = 3000) -> None:
    import uvicorn

    # Logging itself is configured by main.py
    log_level = os.getenv("LOG_LEVEL", "info").upper()

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Server starting on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
