"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for msid-api happen here. No module should
call os.getenv() or os.environ.get() directly.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Only the
      application factory (api/main.create_app) calls it; every component
      receives the resulting Settings explicitly at construction time.

  Frozen model: Settings is immutable after validation. The signing secret and
      provider settings are read concurrently by every request worker, so no
      code path may mutate them.

  field_validator on jwt_secret: implements the DEBUG-conditional secret logic.
      Dev mode generates a key with a warning, production mode refuses to start
      without one.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every issued credential.

  [M7] In production mode (DEBUG not set or false), a missing JWT_SECRET is a
       hard startup failure.

  The secret is excluded from repr() so it never lands in a log line or a
  traceback.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or resources/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("msid.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'msid.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (given DEBUG=true).

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret` reads from JWT_SECRET, `app_url` reads from APP_URL.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = ""
    port: int = 8080
    app_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    jwt_secret: str = Field(default="", repr=False, validate_default=True)
    jwt_expiration_minutes: int = Field(default=60, gt=0)
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Microsoft identity platform
    # ------------------------------------------------------------------

    microsoft_client_id: str = ""
    microsoft_client_secret: str = Field(default="", repr=False)
    microsoft_redirect_uri: str = "http://localhost:8080/auth/provider/callback"
    microsoft_tenant_id: str = "common"
    provider_timeout_seconds: float = Field(default=10.0, gt=0)
    # Compare the oauth_state cookie with the callback's state parameter.
    oauth_state_check: bool = True

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str, info: ValidationInfo) -> str:
        """Enforce the JWT_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Credentials will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not value:
            if info.data.get("debug"):
                logger.warning(
                    "WARNING: Using auto-generated JWT_SECRET. " "Credentials will not persist across restarts."
                )
                return secrets.token_hex(32)
            raise ValueError(
                "JWT_SECRET is required in production mode. "
                "Set JWT_SECRET in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(value) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    Only the app factory should call this; components take the instance as a
    constructor argument.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
