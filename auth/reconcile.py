"""
auth/reconcile.py -- Map a provider profile onto a local User (upsert by email).

Flow per attempt:
  1. get_by_email(profile.email)
  2. found + live     -> update_name(), keep id and email
     found + deleted  -> ReconcileFailure (a soft-deleted account may not sign in)
     not found        -> create_user() with a fresh UUID4
  3. create_user() raising IntegrityError means a concurrent sign-in for the
     same email committed first. Loop back to step 1, which now finds that row
     and updates it.

The UNIQUE(email) constraint is the authority; the loop is bounded so a
persistently failing store cannot spin forever.

Layer rule: no imports from api/ or resources/.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ReconcileFailure
from auth.models import User
from auth.oauth import ProviderProfile
from auth.store import UserStore

logger = logging.getLogger("msid.auth.reconcile")

MAX_ATTEMPTS = 3


def reconcile_identity(store: UserStore, profile: ProviderProfile, *, max_attempts: int = MAX_ATTEMPTS) -> User:
    """Create or update the local user for this profile and return it.

    Raises:
        ReconcileFailure: the account is soft-deleted, the store failed, or the
            duplicate-key race did not settle within max_attempts.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            existing = store.get_by_email(profile.email)
            if existing is not None:
                if not existing.is_active:
                    logger.warning("Sign-in refused for deleted account user_id=%s", existing.id)
                    raise ReconcileFailure("account is deleted")
                updated = store.update_name(existing.id, profile.name)
                if updated is None:
                    # Row vanished between read and write; start over.
                    continue
                logger.info("Existing user updated user_id=%s email=%s", updated.id, updated.email)
                return updated

            created = store.create_user(User(id=str(uuid.uuid4()), email=profile.email, name=profile.name))
            logger.info("New user created user_id=%s email=%s", created.id, created.email)
            return created
        except IntegrityError:
            logger.info(
                "Concurrent sign-in created email=%s first (attempt %d/%d), re-reading",
                profile.email,
                attempt,
                max_attempts,
            )
        except SQLAlchemyError as exc:
            logger.error("User store failure during reconcile for email=%s: %s", profile.email, exc)
            raise ReconcileFailure("user store failure") from exc

    raise ReconcileFailure(f"could not reconcile {profile.email!r} after {max_attempts} attempts")
