"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores, the codec
and routes do the work; the small to_dict() helpers only fix the wire shape
of the post-login redirect.

Layer rule: no imports from api/, core/, or resources/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A locally known identity, reconciled from the provider profile by email.

    id is a UUID4 string generated on first sign-in and never changes.
    email is the reconciliation key: unique, and immutable once written.
    name is the provider display name, refreshed on every sign-in.
    deleted_at is the soft-delete marker; the auth core never sets it.
    """

    id: str
    email: str
    name: str
    created_at: str = ""  # ISO 8601
    updated_at: str = ""  # ISO 8601
    deleted_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def to_dict(self) -> dict:
        # "username" carries the display name -- the frontend contract predates
        # the name/username split.
        return {
            "id": self.id,
            "email": self.email,
            "username": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class TokenDetails:
    """A freshly minted credential as handed to the client.

    refresh_token is a random opaque identifier. There is no redemption flow;
    it is returned for client compatibility only.
    expires_at is kept for server-side use and is not serialized.
    """

    access_token: str
    refresh_token: str
    expires_in: int  # seconds
    expires_at: datetime
    token_type: str = "Bearer"  # noqa: S105 -- token type, not a password

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


@dataclass(frozen=True)
class Claims:
    """Verified claim set of a credential. Times are UNIX seconds."""

    subject: str
    email: str
    name: str
    issued_at: int
    expires_at: int
    jti: str
    issuer: str
    audience: str


@dataclass(frozen=True)
class Identity:
    """The caller identity bound onto request.state by the access gate."""

    subject: str
    email: str
    name: str
