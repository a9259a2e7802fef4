"""
auth/errors.py -- Exception types raised by the authentication core.

Only lightweight exceptions live here so the api/ layer can turn them into
HTTP responses. The hierarchy is what callers catch on:

  AuthError
    InvalidToken            -- credential rejected by verify_credential()
      MalformedToken        -- not a parseable JWT, or required claims missing
      BadSignature          -- signature, algorithm, issuer or audience mismatch
      Expired               -- signature fine, exp is in the past
    SigningFailure          -- the signing primitive itself failed
    ProviderError           -- identity provider round-trip failed
      ExchangeFailure       -- authorization code -> token exchange
      ProfileFetchFailure   -- Graph /me call or profile decode
    ReconcileFailure        -- local user record could not be created/updated
    AuthenticationFailure   -- generic wrapper surfaced by AuthService

All InvalidToken subclasses map to the same 401 at the gate. They stay
distinct so logs can say why a token was refused.

Layer rule: no imports from api/, core/, or resources/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authentication-core failure."""


class InvalidToken(AuthError):
    """The presented credential must not be trusted."""


class MalformedToken(InvalidToken):
    pass


class BadSignature(InvalidToken):
    pass


class Expired(InvalidToken):
    pass


class SigningFailure(AuthError):
    """Raised when the JWT library fails to sign a credential. Not retryable."""


class ProviderError(AuthError):
    pass


class ExchangeFailure(ProviderError):
    """Authorization code exchange failed. Codes are single-use: never retry."""


class ProfileFetchFailure(ProviderError):
    """The provider profile could not be fetched or lacks required fields."""


class ReconcileFailure(AuthError):
    pass


class AuthenticationFailure(AuthError):
    """Generic login failure surfaced to the HTTP boundary.

    The message is intentionally uninformative. The specific cause is kept in
    __cause__ and in the server log, never sent to the client.
    """

    def __init__(self, message: str = "Failed to authenticate") -> None:
        super().__init__(message)
