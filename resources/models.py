"""
resources/models.py -- Domain dataclass for the owned resource collection.

Pure data container with zero logic. Ownership filtering and soft deletion
live in resources/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Resource:
    """A piece of user content owned by exactly one User.

    owner_id is the credential subject that created it; every store query is
    scoped by it, so a caller can never see or touch another user's rows.

    id is "" before the record is written to the database.
    """

    owner_id: str
    content: str
    caption: Optional[str] = None
    is_public: bool = True
    id: str = ""
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601
    deleted_at: Optional[str] = None  # soft-delete marker

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "content": self.content,
            "caption": self.caption,
            "is_public": self.is_public,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
