"""
tests/test_reconcile.py -- Identity reconciliation (auth/reconcile.py) against a real UserStore.

Coverage:
  - first sign-in creates a user with a UUID id
  - later sign-ins update the name and keep id and email
  - a soft-deleted account is refused
  - the duplicate-key race: a create that loses to a concurrent insert
    re-reads and updates instead of failing (deterministic and threaded)
  - a store that keeps raising IntegrityError gives up after MAX_ATTEMPTS
  - any other store error becomes ReconcileFailure
"""

from __future__ import annotations

import threading
import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.errors import ReconcileFailure
from auth.models import User
from auth.oauth import ProviderProfile
from auth.reconcile import MAX_ATTEMPTS, reconcile_identity
from auth.store import UserStore


def _profile(email: str = "a@b.com", name: str = "A B") -> ProviderProfile:
    return ProviderProfile(email=email, name=name)


class TestUpsert:
    def test_first_sign_in_creates_user(self, user_store: UserStore) -> None:
        user = reconcile_identity(user_store, _profile())

        assert uuid.UUID(user.id).version == 4
        assert user.email == "a@b.com"
        assert user.name == "A B"
        assert user.created_at and user.updated_at
        assert user_store.count() == 1

    def test_second_sign_in_updates_name_keeps_id(self, user_store: UserStore) -> None:
        first = reconcile_identity(user_store, _profile(name="A B"))
        second = reconcile_identity(user_store, _profile(name="A B2"))

        assert second.id == first.id
        assert second.email == first.email
        assert second.name == "A B2"
        assert second.created_at == first.created_at
        assert user_store.count() == 1
        assert user_store.get_by_id(first.id).name == "A B2"

    def test_distinct_emails_get_distinct_users(self, user_store: UserStore) -> None:
        a = reconcile_identity(user_store, _profile("a@b.com"))
        c = reconcile_identity(user_store, _profile("c@d.com"))

        assert a.id != c.id
        assert user_store.count() == 2

    def test_deleted_account_is_refused(self, user_store: UserStore) -> None:
        user = reconcile_identity(user_store, _profile())
        assert user_store.soft_delete(user.id)

        with pytest.raises(ReconcileFailure):
            reconcile_identity(user_store, _profile(name="Back Again"))
        assert user_store.count() == 1


class _LostRaceStore(UserStore):
    """get_by_email misses once, as if another request inserted in between."""

    def __init__(self, db_url: str) -> None:
        super().__init__(db_url)
        self.lookups = 0

    def get_by_email(self, email: str) -> User | None:
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super().get_by_email(email)


class TestDuplicateKeyRace:
    def test_lost_race_rereads_and_updates(self) -> None:
        store = _LostRaceStore(f"sqlite:///file:race_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
        try:
            winner = store.create_user(User(id=str(uuid.uuid4()), email="a@b.com", name="A B"))

            user = reconcile_identity(store, _profile(name="A B2"))

            assert user.id == winner.id
            assert user.name == "A B2"
            assert store.lookups == 2
            assert store.count() == 1
        finally:
            store.close()

    def test_persistent_integrity_error_gives_up(self) -> None:
        store = MagicMock(spec=UserStore)
        store.get_by_email.return_value = None
        store.create_user.side_effect = IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(ReconcileFailure):
            reconcile_identity(store, _profile())
        assert store.create_user.call_count == MAX_ATTEMPTS

    def test_other_store_error_is_reconcile_failure(self) -> None:
        store = MagicMock(spec=UserStore)
        store.get_by_email.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

        with pytest.raises(ReconcileFailure) as exc_info:
            reconcile_identity(store, _profile())
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_concurrent_first_sign_ins_create_one_user(self, tmp_path) -> None:
        """Two threads both miss the lookup, both insert; exactly one row survives."""
        barrier = threading.Barrier(2)

        class _BarrierStore(UserStore):
            def __init__(self, db_url: str) -> None:
                super().__init__(db_url)
                self._waited: set[int] = set()

            def get_by_email(self, email: str) -> User | None:
                found = super().get_by_email(email)
                ident = threading.get_ident()
                if ident not in self._waited:
                    self._waited.add(ident)
                    barrier.wait(timeout=10)
                return found

        store = _BarrierStore(f"sqlite:///{tmp_path / 'race.db'}")
        results: list[User] = []
        errors: list[BaseException] = []

        def sign_in(name: str) -> None:
            try:
                results.append(reconcile_identity(store, _profile(name=name)))
            except BaseException as exc:  # noqa: BLE001 -- surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=sign_in, args=(n,)) for n in ("A B", "A B2")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        try:
            assert errors == []
            assert len(results) == 2
            assert results[0].id == results[1].id
            assert store.count() == 1
        finally:
            store.close()
