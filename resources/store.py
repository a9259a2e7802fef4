"""
resources/store.py -- SQLAlchemy-backed persistence for the owned resource collection.

Uses SQLAlchemy Core (not ORM) so resources/models.py stays the authoritative
domain representation. Swapping SQLite for PostgreSQL or MySQL is a
connection string change.

Pattern: Repository + Data Mapper. ResourceStore is the repository;
_row_to_resource is the mapper. Route handlers never touch SQL directly.

Ownership: every read and write is filtered on (id, owner_id, deleted_at IS
NULL). "Not found" and "belongs to someone else" are indistinguishable to the
caller on purpose.

Deletion is soft: delete_resource() stamps deleted_at and the row drops out of
every query.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ResourceStore("sqlite:///msid.db")
    created = store.create_resource(Resource(owner_id=uid, content="hello"))
    rows = store.list_resources(uid)
    store.close()
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text

from core.database import make_engine
from resources.models import Resource

logger = logging.getLogger("msid.resources")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_resources = Table(
    "resources",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID4
    Column("owner_id", String(36), nullable=False, index=True),
    Column("content", Text, nullable=False),
    Column("caption", String(255)),
    Column("is_public", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32), index=True),
)

# Fields a caller may change through update_resource().
_MUTABLE_FIELDS = frozenset({"content", "caption", "is_public"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ResourceStore:
    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def _owned(self, resource_id: str, owner_id: str):
        return (
            (_resources.c.id == resource_id)
            & (_resources.c.owner_id == owner_id)
            & (_resources.c.deleted_at.is_(None))
        )

    def create_resource(self, resource: Resource) -> Resource:
        """Insert a new resource with a fresh UUID and return it."""
        now = _now_iso()
        resource.id = str(uuid.uuid4())
        resource.created_at = now
        resource.updated_at = now
        with self.engine.connect() as conn:
            conn.execute(
                _resources.insert().values(
                    id=resource.id,
                    owner_id=resource.owner_id,
                    content=resource.content,
                    caption=resource.caption,
                    is_public=resource.is_public,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        logger.info("Resource created resource_id=%s user_id=%s", resource.id, resource.owner_id)
        return resource

    def list_resources(self, owner_id: str) -> list[Resource]:
        """Return the owner's live resources, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _resources.select()
                .where((_resources.c.owner_id == owner_id) & (_resources.c.deleted_at.is_(None)))
                .order_by(_resources.c.created_at.desc())
            ).fetchall()
        return [_row_to_resource(r) for r in rows]

    def get_resource(self, resource_id: str, owner_id: str) -> Optional[Resource]:
        """Fetch one resource. Returns None if absent, deleted, or not owned."""
        with self.engine.connect() as conn:
            row = conn.execute(_resources.select().where(self._owned(resource_id, owner_id))).fetchone()
        return _row_to_resource(row) if row is not None else None

    def update_resource(self, resource_id: str, owner_id: str, /, **fields) -> Optional[Resource]:
        """Update content, caption and/or is_public on an owned resource.

        Unknown keys raise ValueError rather than being silently ignored.
        Returns the updated resource, or None if it is not the owner's.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown resource fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _resources.update().where(self._owned(resource_id, owner_id)).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
            if result.rowcount == 0:
                return None
            row = conn.execute(_resources.select().where(_resources.c.id == resource_id)).fetchone()
        logger.info("Resource updated resource_id=%s user_id=%s", resource_id, owner_id)
        return _row_to_resource(row)

    def delete_resource(self, resource_id: str, owner_id: str) -> bool:
        """Soft-delete an owned resource. Returns False if not found or not owned."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _resources.update().where(self._owned(resource_id, owner_id)).values(deleted_at=_now_iso())
            )
            conn.commit()
        if result.rowcount > 0:
            logger.info("Resource deleted resource_id=%s user_id=%s", resource_id, owner_id)
            return True
        return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_resource(row) -> Resource:
    return Resource(
        id=row.id,
        owner_id=row.owner_id,
        content=row.content,
        caption=row.caption,
        is_public=bool(row.is_public),
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
