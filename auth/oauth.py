"""
auth/oauth.py -- Microsoft identity platform client (authorization code flow).

Uses authlib's requests integration: OAuth2Session builds the authorize URL
and performs the code-for-token exchange; a plain requests.Session calls the
Microsoft Graph /me endpoint with the resulting bearer token.

Security notes:
  State: this module never invents a state value. The caller (AuthService)
       generates it, binds it to the browser, and compares it on callback.
       build_login_url() only echoes it.

  Timeouts: both outbound calls carry settings.provider_timeout_seconds. A
       timeout fails the login attempt; it is never retried because
       authorization codes are single-use.

  Profile decode: the Graph payload is validated into ProviderProfile. A
       missing or empty userPrincipalName/displayName is a
       ProfileFetchFailure, not a KeyError deep inside the reconciler.

Layer rule: no imports from api/ or resources/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

import requests
from authlib.integrations.base_client import OAuthError
from authlib.integrations.requests_client import OAuth2Session
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from auth.errors import ExchangeFailure, ProfileFetchFailure
from core.config import Settings

logger = logging.getLogger("msid.auth.oauth")

AUTHORITY = "https://login.microsoftonline.com"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"
SCOPES = ("openid", "profile", "email", "offline_access", "User.Read")


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


class ProviderToken(BaseModel):
    """Token endpoint response. Only access_token is required."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    id_token: str | None = None


class ProviderProfile(BaseModel):
    """The two Graph /me fields the reconciler needs.

    Validated from the raw payload by alias (userPrincipalName, displayName);
    populate_by_name lets tests and callers build it with email=/name=.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True, frozen=True)

    email: str = Field(alias="userPrincipalName", min_length=1)
    name: str = Field(alias="displayName", min_length=1)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class MicrosoftProvider:
    """Identity provider client for a single Microsoft Entra tenant.

    Usage:
        provider = MicrosoftProvider(settings)
        url = provider.build_login_url(state)
        token = provider.exchange_code(code)
        profile = provider.fetch_profile(token.access_token)
    """

    def __init__(self, settings: Settings, http: requests.Session | None = None) -> None:
        self._client_id = settings.microsoft_client_id
        self._client_secret = settings.microsoft_client_secret
        self._redirect_uri = settings.microsoft_redirect_uri
        self._timeout = settings.provider_timeout_seconds
        tenant = settings.microsoft_tenant_id or "common"
        self.authorize_url = f"{AUTHORITY}/{tenant}/oauth2/v2.0/authorize"
        self.token_url = f"{AUTHORITY}/{tenant}/oauth2/v2.0/token"  # noqa: S105 -- URL, not a password

        if http is None:
            http = requests.Session()
            # Graph does not redirect /me; anything beyond a hop or two is suspect.
            http.max_redirects = 3
        self._http = http

    def _session(self) -> OAuth2Session:
        # A fresh session per login attempt: OAuth2Session keeps the fetched
        # token on the instance, which must not leak across requests.
        return OAuth2Session(
            client_id=self._client_id,
            client_secret=self._client_secret,
            scope=" ".join(SCOPES),
            redirect_uri=self._redirect_uri,
            token_endpoint_auth_method="client_secret_post",
        )

    def build_login_url(self, state: str) -> str:
        """Return the authorize endpoint URL with client_id, redirect_uri, scope and state."""
        with self._session() as session:
            url, _ = session.create_authorization_url(self.authorize_url, state=state)
        return url

    def exchange_code(self, code: str) -> ProviderToken:
        """Redeem an authorization code at the token endpoint.

        Raises:
            ExchangeFailure: network error, timeout, error response, non-JSON
                body, or a body without access_token.
        """
        try:
            with self._session() as session:
                raw = session.fetch_token(self.token_url, code=code, timeout=self._timeout)
        except OAuthError as exc:
            logger.warning("Token endpoint rejected the authorization code: %s", exc.error)
            raise ExchangeFailure(f"token endpoint returned error {exc.error!r}") from exc
        except requests.RequestException as exc:
            logger.warning("Token exchange request failed: %s", type(exc).__name__)
            raise ExchangeFailure("token exchange request failed") from exc
        except (TypeError, ValueError) as exc:
            raise ExchangeFailure("token endpoint returned a malformed body") from exc

        try:
            return ProviderToken.model_validate(dict(raw))
        except (ValidationError, TypeError, ValueError) as exc:
            raise ExchangeFailure("token response has no access_token") from exc

    def fetch_profile(self, access_token: str) -> ProviderProfile:
        """Fetch and validate the signed-in principal's Graph profile.

        Raises:
            ProfileFetchFailure: non-2xx, timeout, non-JSON body, or missing
                userPrincipalName/displayName.
        """
        try:
            resp = self._http.get(
                GRAPH_ME_URL,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            logger.warning("Graph profile request failed: %s", exc)
            raise ProfileFetchFailure("profile request failed") from exc
        except ValueError as exc:
            raise ProfileFetchFailure("profile response is not JSON") from exc

        if not isinstance(payload, dict):
            raise ProfileFetchFailure("profile response is not a JSON object")
        try:
            return ProviderProfile.model_validate(payload)
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise ProfileFetchFailure(f"profile is missing required fields: {', '.join(fields)}") from exc
