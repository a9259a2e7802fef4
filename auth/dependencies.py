"""
auth/dependencies.py -- FastAPI Depends() helpers for the access gate.

One auth method: Authorization: Bearer <credential>. The check is a pure
function of that header, the signing secret and the current time -- no store
lookup, no session.

try_get_identity() is the soft variant (returns None on failure).
get_current_identity() wraps the same checks and raises HTTP 401 otherwise.

Every rejection gets the same status, body and WWW-Authenticate header,
whatever the cause. The cause (missing header, wrong scheme, malformed,
bad signature, expired) is logged at WARNING for operators only.

Layer rule: no imports from resources/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.errors import InvalidToken
from auth.models import Identity
from auth.tokens import verify_credential

logger = logging.getLogger("msid.auth.gate")

BEARER_PREFIX = "Bearer "
UNAUTHORIZED_MESSAGE = "Authentication required."


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=UNAUTHORIZED_MESSAGE,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _authenticate(request: Request) -> Identity:
    """Run the gate checks in order; raise HTTP 401 on the first failure."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        logger.warning("Rejected %s %s: missing authorization header", request.method, request.url.path)
        raise _unauthorized()

    if not auth_header.startswith(BEARER_PREFIX):
        logger.warning("Rejected %s %s: authorization header is not Bearer", request.method, request.url.path)
        raise _unauthorized()

    token = auth_header[len(BEARER_PREFIX) :].strip()
    secret = request.app.state.settings.jwt_secret
    try:
        claims = verify_credential(token, secret)
    except InvalidToken as exc:
        logger.warning(
            "Rejected %s %s: %s (%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
        )
        raise _unauthorized() from exc

    identity = Identity(subject=claims.subject, email=claims.email, name=claims.name)
    request.state.identity = identity
    logger.debug("Authenticated user_id=%s", identity.subject)
    return identity


def try_get_identity(request: Request) -> Identity | None:
    """Return the caller's Identity, or None when the request is not authenticated.

    Never raises -- callers that need a hard 401 should use get_current_identity().
    An absent header is the normal anonymous case and is not logged.
    """
    if not request.headers.get("Authorization"):
        return None
    try:
        return _authenticate(request)
    except HTTPException:
        return None


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer credential. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    return _authenticate(request)
