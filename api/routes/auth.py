"""
api/routes/auth.py -- Federated sign-in endpoints.

Routes:
  GET  /auth/provider            -- issue anti-forgery state; return provider login URL
  GET  /auth/provider/callback   -- provider redirect target; mint credential; 307 to the app
  POST /auth/signout             -- stateless sign-out acknowledgement

Security:
  [S1] The oauth_state cookie set by /auth/provider is compared in constant
       time with the callback's state parameter before the code is redeemed.
       Mismatch or absence is a 401. OAUTH_STATE_CHECK=false disables this
       for local debugging only.
  [S2] Any failure inside the login pipeline returns the same generic 500.
       The failing step is logged by AuthService, never sent to the client.
  [S3] Cache-Control: no-store on every response that carries or precedes a
       credential.
  [S4] The credential and user travel to the frontend as query parameters of
       the post-login redirect. This keeps the existing frontend contract; it
       also exposes the token to browser history and Referer headers.
  Sign-out is stateless: the credential stays valid until it expires.
"""

from __future__ import annotations

import hmac
import json
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.models import LoginUrlResponse, MessageResponse
from auth.dependencies import try_get_identity
from auth.errors import AuthenticationFailure
from auth.service import AuthService
from auth.tokens import STATE_COOKIE, clear_state_cookie, set_state_cookie

logger = logging.getLogger("msid.api.auth")

# Auth policy:
# - GET  /auth/provider:           public -- starts the login
# - GET  /auth/provider/callback:  public -- guarded by the state cookie [S1]
# - POST /auth/signout:            public -- logs the caller when a valid credential is present
router = APIRouter()


def _state_matches(cookie_state: str | None, query_state: str | None) -> bool:
    if not cookie_state or not query_state:
        return False
    return hmac.compare_digest(cookie_state.encode("utf-8"), query_state.encode("utf-8"))


@router.get("/auth/provider", response_model=LoginUrlResponse)
def provider_login(request: Request) -> JSONResponse:
    """Return the Microsoft login URL and bind a fresh state to the browser."""
    service: AuthService = request.app.state.auth_service
    settings = request.app.state.settings

    state, login_url = service.start_login()
    resp = JSONResponse(content=LoginUrlResponse(login_url=login_url).model_dump())
    set_state_cookie(resp, state, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [S3]
    return resp


@router.get("/auth/provider/callback", name="provider_callback")
def provider_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Handle the provider redirect and hand the credential to the frontend.

    Flow:
      1. Provider-reported error (user cancelled, consent denied) -> 400.
      2. Missing code -> 400.
      3. State cookie vs state parameter [S1] -> 401 on mismatch.
      4. AuthService.complete_login(code) -> 500 on any failure [S2].
      5. 307 to {APP_URL}/login?token=<json>&user=<json> [S4]; clear the state cookie.
    """
    settings = request.app.state.settings
    service: AuthService = request.app.state.auth_service

    if error:
        logger.warning("Provider returned error on callback: %s", error)
        raise HTTPException(status_code=400, detail="Sign-in was not completed at the identity provider")

    if not code:
        logger.warning("Callback without authorization code")
        raise HTTPException(status_code=400, detail="Code not found")

    if settings.oauth_state_check and not _state_matches(request.cookies.get(STATE_COOKIE), state):
        logger.warning("Callback state mismatch")
        raise HTTPException(status_code=401, detail="Invalid state")

    try:
        token, user = service.complete_login(code)
    except AuthenticationFailure:
        raise HTTPException(status_code=500, detail="Failed to authenticate") from None

    logger.info("User logged in user_id=%s email=%s", user.id, user.email)

    query = urlencode(
        {
            "token": json.dumps(token.to_dict(), separators=(",", ":")),
            "user": json.dumps(user.to_dict(), separators=(",", ":")),
        }
    )
    resp = RedirectResponse(f"{settings.app_url.rstrip('/')}/login?{query}", status_code=307)
    clear_state_cookie(resp, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [S3]
    return resp


@router.post("/auth/signout", response_model=MessageResponse)
def signout(request: Request) -> JSONResponse:
    """Acknowledge sign-out. The client discards its credential; nothing is revoked."""
    settings = request.app.state.settings
    identity = try_get_identity(request)
    if identity is not None:
        logger.info("User signed out user_id=%s", identity.subject)

    resp = JSONResponse(content=MessageResponse(message="Successfully signed out").model_dump())
    clear_state_cookie(resp, secure=settings.secure_cookies)
    return resp
