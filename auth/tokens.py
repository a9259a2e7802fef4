"""
auth/tokens.py -- Credential codec: JWT minting and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the process signing
       secret and carry sub/user_id, email, name, iat, nbf, exp, jti, iss and
       aud. Verification raises a specific InvalidToken subclass so the gate
       can log why a token was refused while answering every failure with the
       same 401.

  Algorithm confusion: the header alg is checked before any key material is
       touched, and decode() is pinned to algorithms=["HS256"]. A token that
       claims "none", RS256 or HS512 is a BadSignature no matter what its
       signature bytes say.

  Expiry: exp/nbf are checked here, against an injectable `now`, rather than
       inside jose. That keeps verification a pure function of (token, secret,
       now) and lets tests evaluate a token at any instant.

  Anti-forgery state: secrets.token_bytes(32), URL-safe base64 -- 256 bits of
       entropy, safe to put in a cookie and a query string unescaped.

  Secret: always passed in by the caller (from Settings). This module holds no
       configuration of its own.

Layer rule: no imports from api/, core/, or resources/.
"""

from __future__ import annotations

import base64
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from auth.errors import BadSignature, Expired, MalformedToken, SigningFailure
from auth.models import Claims, TokenDetails

logger = logging.getLogger("msid.auth")

ALGORITHM = "HS256"
ISSUER = "msid-api"
AUDIENCE = "msid-api-users"

# jose skips the iss/aud checks when the claim is absent, so both are required here.
_REQUIRED_CLAIMS = ("sub", "email", "name", "exp", "iat", "jti", "iss", "aud")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Anti-forgery state
# ---------------------------------------------------------------------------


def generate_state() -> str:
    """Return 32 random bytes as unpadded URL-safe base64 (43 characters)."""
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def mint_credential(
    subject_id: str,
    email: str,
    name: str,
    secret: str,
    ttl_minutes: int,
    *,
    now: datetime | None = None,
) -> TokenDetails:
    """Sign a credential for the given user.

    Args:
        subject_id:  User.id, stored as both sub and user_id.
        email:       User.email.
        name:        Display name at the time of sign-in.
        secret:      HS256 signing secret.
        ttl_minutes: Lifetime; exp - iat == ttl_minutes * 60.
        now:         Issuance instant. Defaults to the current UTC time.

    Raises:
        SigningFailure: the JWT library could not produce a token.
    """
    issued = now or _utcnow()
    expires = issued + timedelta(minutes=ttl_minutes)
    iat = int(issued.timestamp())
    payload = {
        "sub": subject_id,
        "user_id": subject_id,
        "email": email,
        "name": name,
        "iat": iat,
        "nbf": iat,
        "exp": iat + ttl_minutes * 60,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "jti": str(uuid.uuid4()),
    }
    try:
        access_token = jwt.encode(payload, secret, algorithm=ALGORITHM)
    except (JWTError, TypeError, ValueError) as exc:
        logger.error("Failed to sign credential for user_id=%s: %s", subject_id, type(exc).__name__)
        raise SigningFailure("credential signing failed") from exc

    return TokenDetails(
        access_token=access_token,
        refresh_token=str(uuid.uuid4()),
        expires_in=ttl_minutes * 60,
        expires_at=expires,
    )


def verify_credential(token: str, secret: str, *, now: datetime | None = None) -> Claims:
    """Verify a credential and return its claims.

    Order of checks: structure, header algorithm, signature + issuer +
    audience, required claims, then time. A forged token is therefore reported
    as BadSignature even when it is also expired.

    Raises:
        MalformedToken: not a JWT, or a required claim is missing.
        BadSignature:   wrong algorithm, wrong key, wrong issuer or audience.
        Expired:        exp is not after `now` (or nbf is after it).
    """
    try:
        header = jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedToken("token could not be parsed") from exc

    if header.get("alg") != ALGORITHM:
        raise BadSignature(f"unexpected signing algorithm: {header.get('alg')!r}")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
            options={"verify_exp": False, "verify_nbf": False},
        )
    except JWTClaimsError as exc:
        raise BadSignature(f"claim check failed: {exc}") from exc
    except JWTError as exc:
        raise BadSignature("signature verification failed") from exc

    missing = [c for c in _REQUIRED_CLAIMS if c not in payload]
    if missing:
        raise MalformedToken(f"missing claims: {', '.join(missing)}")

    current = int((now or _utcnow()).timestamp())
    if int(payload["exp"]) <= current:
        raise Expired("token has expired")
    if "nbf" in payload and int(payload["nbf"]) > current:
        raise Expired("token is not yet valid")

    return Claims(
        subject=str(payload["sub"]),
        email=str(payload["email"]),
        name=str(payload["name"]),
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
        jti=str(payload["jti"]),
        issuer=str(payload.get("iss", "")),
        audience=str(payload.get("aud", "")),
    )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------

STATE_COOKIE = "oauth_state"
_STATE_COOKIE_MAX_AGE = 3600


def set_state_cookie(response, state: str, secure: bool) -> None:
    """Bind the anti-forgery state to the browser.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": the cookie still rides along on the top-level GET the
        provider redirects back with.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    """
    response.set_cookie(
        STATE_COOKIE,
        value=state,
        max_age=_STATE_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def clear_state_cookie(response, secure: bool) -> None:
    response.delete_cookie(STATE_COOKIE, path="/", httponly=True, samesite="lax", secure=secure)
