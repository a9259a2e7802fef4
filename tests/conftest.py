"""
tests/conftest.py -- Shared test fixtures for msid-api.

This module provides:
  - make_settings(): a Settings instance that never reads .env
  - StubProvider / stub_provider: an offline stand-in for MicrosoftProvider
  - user_store / resource_store: isolated in-memory stores per test
  - harness: TestClient over a real create_app() with a patched lifespan
  - harness_factory: the same, with Settings overrides

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG is set before any app import so a stray get_settings() call can
auto-generate a secret instead of raising.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode

# CRITICAL: Set DEBUG before any app import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from api.main import create_app
from auth.errors import ExchangeFailure, ProfileFetchFailure
from auth.oauth import ProviderProfile, ProviderToken
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import mint_credential
from core.config import Settings
from resources.store import ResourceStore

TEST_SECRET = "test-signing-secret-0123456789abcdef0123456789"
APP_URL = "http://frontend.test"


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "jwt_secret": TEST_SECRET,
        "microsoft_client_id": "client-123",
        "microsoft_client_secret": "client-secret",
        "microsoft_tenant_id": "tenant-abc",
        "microsoft_redirect_uri": "http://testserver/auth/provider/callback",
        "app_url": APP_URL,
        "database_url": "sqlite://",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def memory_db_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Provider stub
# ---------------------------------------------------------------------------


class StubProvider:
    """Offline identity provider keyed by authorization code.

    profiles maps code -> raw Graph /me payload. Unknown codes fail the
    exchange, just as a spent or forged code would at the real endpoint.
    """

    def __init__(self, profiles: dict[str, dict] | None = None) -> None:
        self.profiles: dict[str, dict] = dict(profiles or {})
        self.exchanged: list[str] = []

    def build_login_url(self, state: str) -> str:
        return "https://login.test/authorize?" + urlencode({"client_id": "client-123", "state": state})

    def exchange_code(self, code: str) -> ProviderToken:
        self.exchanged.append(code)
        if code not in self.profiles:
            raise ExchangeFailure("token endpoint returned error 'invalid_grant'")
        return ProviderToken(access_token=f"at-{code}")

    def fetch_profile(self, access_token: str) -> ProviderProfile:
        payload = self.profiles[access_token.removeprefix("at-")]
        try:
            return ProviderProfile.model_validate(payload)
        except ValidationError as exc:
            raise ProfileFetchFailure("profile is missing required fields") from exc


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider(
        {
            "validcode": {"userPrincipalName": "a@b.com", "displayName": "A B"},
            "validcode2": {"userPrincipalName": "a@b.com", "displayName": "A B2"},
            "nameless": {"userPrincipalName": "c@d.com"},
        }
    )


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(memory_db_url("users"))
    yield store
    store.close()


@pytest.fixture
def resource_store() -> Generator[ResourceStore, None, None]:
    store = ResourceStore(memory_db_url("resources"))
    yield store
    store.close()


# ---------------------------------------------------------------------------
# App harness
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    client: TestClient
    settings: Settings
    provider: StubProvider
    user_store: UserStore
    resource_store: ResourceStore

    def bearer(self, subject: str, email: str = "a@b.com", name: str = "A B", **kwargs) -> dict[str, str]:
        token = mint_credential(subject, email, name, self.settings.jwt_secret, 60, **kwargs)
        return {"Authorization": f"Bearer {token.access_token}"}


def _patch_lifespan(user_store: UserStore, resource_store: ResourceStore, provider: StubProvider):
    """Return an async context manager that replaces the real lifespan.

    Wires the test stores and the stub provider into app.state so routes hit
    isolated DBs and never make network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.resource_store = resource_store
        app.state.provider = provider
        app.state.auth_service = AuthService(app.state.settings, provider, user_store)
        yield

    return test_lifespan


def _build_harness(
    settings: Settings, user_store: UserStore, resource_store: ResourceStore, provider: StubProvider
) -> Harness:
    app = create_app(settings)
    app.router.lifespan_context = _patch_lifespan(user_store, resource_store, provider)
    client = TestClient(app, follow_redirects=False, raise_server_exceptions=True)
    return Harness(client, settings, provider, user_store, resource_store)


@pytest.fixture
def harness(settings, user_store, resource_store, stub_provider) -> Generator[Harness, None, None]:
    """Yield a Harness around a live TestClient.

    follow_redirects=False is essential: the callback's 307 Location carries
    the credential, which is invisible once the client follows the redirect.
    """
    h = _build_harness(settings, user_store, resource_store, stub_provider)
    with h.client:
        yield h


@pytest.fixture
def fixed_now() -> datetime:
    return datetime.fromisoformat("2026-01-15T12:00:00+00:00")


@pytest.fixture
def harness_factory(user_store, resource_store, stub_provider):
    """Build harnesses with Settings overrides, e.g. harness_factory(oauth_state_check=False)."""
    clients: list[TestClient] = []

    def build(**overrides) -> Harness:
        h = _build_harness(make_settings(**overrides), user_store, resource_store, stub_provider)
        h.client.__enter__()
        clients.append(h.client)
        return h

    yield build
    for client in clients:
        client.__exit__(None, None, None)
