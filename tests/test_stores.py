"""
tests/test_stores.py -- Repository tests for UserStore and ResourceStore.

Covers:
  - UNIQUE(email) raises IntegrityError on a second insert
  - get_by_id hides soft-deleted users; get_by_email does not
  - update_name changes name and updated_at only
  - resource ownership filter and soft delete
  - update_resource rejects unknown fields
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from resources.models import Resource
from resources.store import ResourceStore


def _user(email: str = "a@b.com", name: str = "A B") -> User:
    return User(id=str(uuid.uuid4()), email=email, name=name)


class TestUserStore:
    def test_duplicate_email_raises(self, user_store: UserStore) -> None:
        user_store.create_user(_user())
        with pytest.raises(IntegrityError):
            user_store.create_user(_user(name="Someone Else"))
        assert user_store.count() == 1

    def test_soft_deleted_visibility(self, user_store: UserStore) -> None:
        user = user_store.create_user(_user())
        assert user_store.soft_delete(user.id) is True
        assert user_store.soft_delete(user.id) is False

        assert user_store.get_by_id(user.id) is None
        found = user_store.get_by_email("a@b.com")
        assert found is not None
        assert found.is_active is False

    def test_update_name(self, user_store: UserStore) -> None:
        user = user_store.create_user(_user())
        updated = user_store.update_name(user.id, "New Name")

        assert updated.id == user.id
        assert updated.email == user.email
        assert updated.name == "New Name"
        assert updated.created_at == user.created_at
        assert updated.updated_at >= user.updated_at

    def test_update_name_unknown_id(self, user_store: UserStore) -> None:
        assert user_store.update_name("missing", "x") is None


class TestResourceStore:
    def test_owner_scoping(self, resource_store: ResourceStore) -> None:
        created = resource_store.create_resource(Resource(owner_id="user-a", content="hello"))

        assert resource_store.get_resource(created.id, "user-a") is not None
        assert resource_store.get_resource(created.id, "user-b") is None
        assert resource_store.list_resources("user-b") == []
        assert resource_store.update_resource(created.id, "user-b", content="x") is None
        assert resource_store.delete_resource(created.id, "user-b") is False

    def test_soft_delete(self, resource_store: ResourceStore) -> None:
        created = resource_store.create_resource(Resource(owner_id="user-a", content="hello"))
        assert resource_store.delete_resource(created.id, "user-a") is True

        assert resource_store.get_resource(created.id, "user-a") is None
        assert resource_store.list_resources("user-a") == []
        assert resource_store.update_resource(created.id, "user-a", content="x") is None

    def test_partial_update(self, resource_store: ResourceStore) -> None:
        created = resource_store.create_resource(Resource(owner_id="user-a", content="hello", caption="c"))
        updated = resource_store.update_resource(created.id, "user-a", is_public=False)

        assert updated.content == "hello"
        assert updated.caption == "c"
        assert updated.is_public is False

    def test_unknown_field_rejected(self, resource_store: ResourceStore) -> None:
        created = resource_store.create_resource(Resource(owner_id="user-a", content="hello"))
        with pytest.raises(ValueError):
            resource_store.update_resource(created.id, "user-a", owner_id="user-b")
