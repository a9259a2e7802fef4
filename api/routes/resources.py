"""
api/routes/resources.py -- Owner-scoped CRUD for the resource collection.

Routes:
  GET    /resources        -- list the caller's resources
  POST   /resources        -- create a resource owned by the caller
  GET    /resources/{id}   -- fetch one
  PUT    /resources/{id}   -- replace content/caption/is_public
  DELETE /resources/{id}   -- soft delete

Every route requires a bearer credential (get_current_identity). The bound
identity's subject is the owner key for every store call, so a resource that
exists but belongs to someone else is a plain 404.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    MessageResponse,
    ResourceCreate,
    ResourceEnvelope,
    ResourceListResponse,
    ResourceOut,
    ResourceUpdate,
)
from auth.dependencies import get_current_identity
from auth.models import Identity
from resources.models import Resource
from resources.store import ResourceStore

router = APIRouter()

_NOT_FOUND = "Resource not found"


@router.get("/resources", response_model=ResourceListResponse)
def list_resources(request: Request, identity: Identity = Depends(get_current_identity)) -> ResourceListResponse:
    store: ResourceStore = request.app.state.resource_store
    rows = store.list_resources(identity.subject)
    return ResourceListResponse(resources=[ResourceOut.from_domain(r) for r in rows])


@router.post("/resources", response_model=ResourceEnvelope, status_code=201)
def create_resource(
    request: Request,
    body: ResourceCreate,
    identity: Identity = Depends(get_current_identity),
) -> ResourceEnvelope:
    store: ResourceStore = request.app.state.resource_store
    created = store.create_resource(
        Resource(
            owner_id=identity.subject,
            content=body.content,
            caption=body.caption,
            is_public=body.is_public,
        )
    )
    return ResourceEnvelope(resource=ResourceOut.from_domain(created))


@router.get("/resources/{resource_id}", response_model=ResourceEnvelope)
def get_resource(
    request: Request,
    resource_id: str,
    identity: Identity = Depends(get_current_identity),
) -> ResourceEnvelope:
    store: ResourceStore = request.app.state.resource_store
    resource = store.get_resource(resource_id, identity.subject)
    if resource is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return ResourceEnvelope(resource=ResourceOut.from_domain(resource))


@router.put("/resources/{resource_id}", response_model=ResourceEnvelope)
def update_resource(
    request: Request,
    resource_id: str,
    body: ResourceUpdate,
    identity: Identity = Depends(get_current_identity),
) -> ResourceEnvelope:
    """Replace the mutable fields. Omitted caption clears it; omitted is_public resets to true."""
    store: ResourceStore = request.app.state.resource_store
    updated = store.update_resource(
        resource_id,
        identity.subject,
        content=body.content,
        caption=body.caption,
        is_public=body.is_public,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return ResourceEnvelope(resource=ResourceOut.from_domain(updated))


@router.delete("/resources/{resource_id}", response_model=MessageResponse)
def delete_resource(
    request: Request,
    resource_id: str,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    store: ResourceStore = request.app.state.resource_store
    if not store.delete_resource(resource_id, identity.subject):
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return MessageResponse(message="Resource deleted successfully")
