"""
auth/service.py -- Authentication core: login initiation and callback handling.

Per login attempt the flow moves through LoginStage values:

  INITIATED          start_login() issued a state and a provider URL
  CALLBACK_RECEIVED  complete_login() got a code
  AUTHENTICATED      a credential was minted
  FAILED             any step raised

Nothing is persisted between the two calls; the only carried state is the
anti-forgery value round-tripped through the browser cookie, which the route
layer compares before calling complete_login().

Failure policy: every step failure is logged here with its step name and
cause, then re-raised as a generic AuthenticationFailure chained from the
cause. The client never learns which step failed.

Layer rule: no imports from api/ or resources/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from enum import Enum

from auth.errors import AuthenticationFailure, AuthError
from auth.models import TokenDetails, User
from auth.oauth import MicrosoftProvider
from auth.reconcile import reconcile_identity
from auth.store import UserStore
from auth.tokens import generate_state, mint_credential
from core.config import Settings

logger = logging.getLogger("msid.auth.service")


class LoginStage(str, Enum):
    INITIATED = "initiated"
    CALLBACK_RECEIVED = "callback_received"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthService:
    """Orchestrates provider login, identity reconciliation and credential minting.

    Usage:
        service = AuthService(settings, MicrosoftProvider(settings), user_store)
        state, url = service.start_login()
        token, user = service.complete_login(code)
    """

    def __init__(self, settings: Settings, provider: MicrosoftProvider, user_store: UserStore) -> None:
        self._settings = settings
        self._provider = provider
        self._user_store = user_store

    def start_login(self) -> tuple[str, str]:
        """Return (state, login_url). The caller must bind state to the client."""
        state = generate_state()
        login_url = self._provider.build_login_url(state)
        logger.info("Login %s", LoginStage.INITIATED.value)
        return state, login_url

    def complete_login(self, code: str) -> tuple[TokenDetails, User]:
        """Resolve an authorization code into (credential, user).

        Raises:
            AuthenticationFailure: any of exchange, profile, reconcile or mint
                failed. The specific AuthError is available as __cause__.
        """
        logger.info("Login %s", LoginStage.CALLBACK_RECEIVED.value)
        step = "exchange_code"
        try:
            provider_token = self._provider.exchange_code(code)

            step = "fetch_profile"
            profile = self._provider.fetch_profile(provider_token.access_token)

            step = "reconcile"
            user = reconcile_identity(self._user_store, profile)

            step = "mint"
            token = mint_credential(
                user.id,
                user.email,
                user.name,
                self._settings.jwt_secret,
                self._settings.jwt_expiration_minutes,
            )
        except AuthError as exc:
            logger.error(
                "Login %s at step=%s: %s: %s",
                LoginStage.FAILED.value,
                step,
                type(exc).__name__,
                exc,
            )
            raise AuthenticationFailure() from exc

        logger.info("Login %s user_id=%s email=%s", LoginStage.AUTHENTICATED.value, user.id, user.email)
        return token, user
