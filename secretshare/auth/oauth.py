"""
OAuth2 authorization-code clients for the federated login providers.

Only the provider-issued account identifier is consumed: it is resolved to a
local user with an atomic find-or-create on the matching id column.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from secretshare.config import AppConfig, ProviderCredentials
from secretshare.errors import AuthorizationFailed
from secretshare.store.base import User, UserStore

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_endpoint: str
    token_endpoint: str
    profile_endpoint: str
    id_field: str  # users column holding this provider's account id
    profile_id_key: str  # key of the account id in the profile response
    scope: Optional[str] = None
    profile_params: Optional[Dict[str, str]] = None

    def credentials(self, cfg: AppConfig) -> ProviderCredentials:
        return getattr(cfg, self.name)

    def callback_url(self, cfg: AppConfig) -> str:
        return getattr(cfg, f"{self.name}_callback_url")


GOOGLE = OAuthProvider(
    name="google",
    authorize_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
    token_endpoint="https://oauth2.googleapis.com/token",
    profile_endpoint="https://www.googleapis.com/oauth2/v3/userinfo",
    id_field="google_id",
    profile_id_key="sub",
    scope="profile",
)

FACEBOOK = OAuthProvider(
    name="facebook",
    authorize_endpoint="https://www.facebook.com/v19.0/dialog/oauth",
    token_endpoint="https://graph.facebook.com/v19.0/oauth/access_token",
    profile_endpoint="https://graph.facebook.com/v19.0/me",
    id_field="facebook_id",
    profile_id_key="id",
    profile_params={"fields": "id"},
)

PROVIDERS: Dict[str, OAuthProvider] = {p.name: p for p in (GOOGLE, FACEBOOK)}


def get_provider(name: str) -> OAuthProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown OAuth provider: {name}") from None


def _require_credentials(cfg: AppConfig, provider: OAuthProvider) -> ProviderCredentials:
    creds = provider.credentials(cfg)
    if not creds.enabled:
        raise AuthorizationFailed(provider.name, "client id/secret not configured")
    return creds


def build_authorize_url(cfg: AppConfig, provider: OAuthProvider, *, state: str) -> str:
    """Build the provider authorization URL the browser is redirected to."""
    creds = _require_credentials(cfg, provider)
    params = {
        "client_id": creds.client_id,
        "redirect_uri": provider.callback_url(cfg),
        "response_type": "code",
        "state": state,
    }
    if provider.scope:
        params["scope"] = provider.scope
    return f"{provider.authorize_endpoint}?{urlencode(params)}"


def _json_or_fail(provider: OAuthProvider, r: requests.Response, what: str) -> Dict[str, Any]:
    if r.status_code >= 400:
        # Avoid leaking sensitive info; include minimal context.
        raise AuthorizationFailed(provider.name, f"{what} failed (status={r.status_code})")
    try:
        data = r.json()
    except ValueError:
        raise AuthorizationFailed(provider.name, f"{what} returned invalid JSON") from None
    if not isinstance(data, dict):
        raise AuthorizationFailed(provider.name, f"{what} returned unexpected payload")
    return data


def exchange_code_for_token(cfg: AppConfig, provider: OAuthProvider, *, code: str) -> str:
    """Exchange the authorization code for an access token."""
    creds = _require_credentials(cfg, provider)
    payload = {
        "client_id": creds.client_id,
        "client_secret": creds.client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": provider.callback_url(cfg),
    }
    try:
        r = requests.post(provider.token_endpoint, data=payload, timeout=HTTP_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise AuthorizationFailed(provider.name, f"token exchange error: {e.__class__.__name__}") from e
    data = _json_or_fail(provider, r, "Token exchange")
    access_token = str(data.get("access_token") or "").strip()
    if not access_token:
        raise AuthorizationFailed(provider.name, "missing access_token in token response")
    return access_token


def fetch_profile(provider: OAuthProvider, *, access_token: str) -> Dict[str, Any]:
    try:
        r = requests.get(
            provider.profile_endpoint,
            params=provider.profile_params,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise AuthorizationFailed(provider.name, f"profile fetch error: {e.__class__.__name__}") from e
    return _json_or_fail(provider, r, "Profile fetch")


def complete_auth(
    cfg: AppConfig,
    store: UserStore,
    provider: OAuthProvider,
    *,
    code: Optional[str],
    state: Optional[str],
    expected_state: Optional[str],
    error: Optional[str] = None,
) -> Tuple[User, Dict[str, Any]]:
    """
    Finish the authorization-code flow and resolve the local user.

    Returns (user, profile).

    Raises:
        AuthorizationFailed: denial, state mismatch, failed exchange or missing account id
        PersistenceError: If the store fails
    """
    if error:
        raise AuthorizationFailed(provider.name, f"provider returned error={error}")
    if not expected_state or (state or "").strip() != expected_state:
        raise AuthorizationFailed(provider.name, "invalid OAuth state")
    if not code:
        raise AuthorizationFailed(provider.name, "missing authorization code")

    access_token = exchange_code_for_token(cfg, provider, code=code)
    profile = fetch_profile(provider, access_token=access_token)

    account_id = str(profile.get(provider.profile_id_key) or "").strip()
    if not account_id:
        raise AuthorizationFailed(provider.name, "profile has no account id")

    user, created = store.find_or_create(provider.id_field, account_id)
    if created:
        logger.info("Created user id=%s for new %s account", user.id, provider.name)
    return user, profile
