"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper (same as resources/store.py).
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced in SQL. It is the authority for "one user per
  email": create_user() lets IntegrityError escape so the reconciler can tell
  a lost creation race from any other failure.

Lookups by email include soft-deleted rows on purpose. The reconciler must see
a deleted account to refuse it, rather than trip over the unique constraint.

Layer rule: no imports from api/ or resources/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, text
from sqlalchemy.engine import Engine

from auth.models import User
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID4
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32), index=True),  # NULL = live
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    The sign-in path uses get_by_email, create_user and update_name.
    get_by_id, soft_delete and count are operator and test helpers: nothing
    in the request path calls them. soft_delete is how an operator blocks an
    account, and the tests use the other two to check what reconcile wrote.

    Usage:
        store = UserStore("sqlite:///msid.db")
        store.create_user(User(id=str(uuid.uuid4()), email="a@b.com", name="A B"))
        user = store.get_by_email("a@b.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _now_iso()
        user.created_at = user.created_at or now
        user.updated_at = user.updated_at or now
        with self.engine.connect() as conn:
            conn.execute(
                users.insert().values(
                    id=user.id,
                    email=user.email,
                    name=user.name,
                    created_at=user.created_at,
                    updated_at=user.updated_at,
                    deleted_at=user.deleted_at,
                )
            )
            conn.commit()
        return user

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a live user by id. Returns None if absent or soft-deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(
                users.select().where((users.c.id == user_id) & (users.c.deleted_at.is_(None)))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email, soft-deleted rows included."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_name(self, user_id: str, name: str) -> User | None:
        """Set the display name and bump updated_at. id and email never change here.

        Returns the refreshed user, or None if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(name=name, updated_at=_now_iso()))
            conn.commit()
            if result.rowcount == 0:
                return None
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def soft_delete(self, user_id: str) -> bool:
        """Mark a user deleted. Returns True if a live row was marked."""
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update()
                .where((users.c.id == user_id) & (users.c.deleted_at.is_(None)))
                .values(deleted_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def count(self) -> int:
        """Return the number of user rows, soft-deleted included."""
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
