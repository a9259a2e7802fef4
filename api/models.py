"""
API request and response models for msid-api REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
resources/models.py, which own the internal domain representation. Route
handlers map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from resources.models import Resource

# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Uniform error envelope. Every non-2xx JSON response uses this shape."""

    error: str


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"


class LoginUrlResponse(BaseModel):
    """Response body for GET /auth/provider."""

    login_url: str


# ---------------------------------------------------------------------------
# Resource request models
# ---------------------------------------------------------------------------


class ResourceCreate(BaseModel):
    """Request body for POST /resources.

    content is required and must be non-blank after stripping whitespace.
    caption is capped at 255 characters to match the column width.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    content: str = Field(min_length=1, max_length=10_000)
    caption: Optional[str] = Field(default=None, max_length=255)
    is_public: bool = True


class ResourceUpdate(ResourceCreate):
    """Request body for PUT /resources/{id}. Full replacement of the mutable fields."""


# ---------------------------------------------------------------------------
# Resource response models
# ---------------------------------------------------------------------------


class ResourceOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    content: str
    caption: Optional[str]
    is_public: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, resource: Resource) -> "ResourceOut":
        """Factory Method: the domain -> wire mapping lives beside the wire model."""
        return cls(**resource.to_dict())


class ResourceEnvelope(BaseModel):
    resource: ResourceOut


class ResourceListResponse(BaseModel):
    resources: list[ResourceOut]
