# app/services/user_store.py

import json
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from app.common.errors import StoreUnavailable, UserNotFound
from app.core.logging import get_logger
from app.models.relationship import RelationshipState, as_user_id, parse_pending
from app.models.user import Profile, User

logger = get_logger(__name__)


def load_json_list(raw) -> list:
    """Decode a JSON list column; anything unreadable counts as empty."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


class UserStore:
    """
    Record store for users and their relationship documents.

    Also the identity collaborator: ``user_exists`` and ``resolve_profile``.
    Nothing here commits on its own; callers decide when a unit of work ends.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def guard(self):
        """Roll back on any failure; driver/connection errors become StoreUnavailable."""
        try:
            yield self
        except (OperationalError, InterfaceError) as e:
            self._rollback_quietly()
            logger.error("user store unavailable: %s", e)
            raise StoreUnavailable() from e
        except Exception:
            self._rollback_quietly()
            raise

    def _rollback_quietly(self):
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.error("rollback failed: %s", e)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    # --- reads ---

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def require(self, user_id: int) -> User:
        user = self.get(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def get_many(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        return {u.id: u for u in self.db.query(User).filter(User.id.in_(ids)).all()}

    def user_exists(self, user_id: int) -> bool:
        return self.db.query(User.id).filter(User.id == user_id).first() is not None

    def existing_ids(self, user_ids: Iterable[int]) -> Set[int]:
        ids = set(user_ids)
        if not ids:
            return set()
        return {row[0] for row in self.db.query(User.id).filter(User.id.in_(ids)).all()}

    def resolve_profile(self, user_id: int) -> Optional[Profile]:
        user = self.get(user_id)
        return Profile.model_validate(user) if user else None

    def resolve_profiles(self, user_ids: Iterable[int]) -> Dict[int, Profile]:
        return {uid: Profile.model_validate(u) for uid, u in self.get_many(user_ids).items()}

    def friend_ids(self, user: User) -> list:
        return load_json_list(user.friends)

    def member_ids(self, user: User) -> Set[int]:
        """Friend ids as stored, normalised to ints for membership checks."""
        return {uid for uid in map(as_user_id, self.friend_ids(user)) if uid is not None}

    def pending_entries(self, user: User) -> list:
        return load_json_list(user.pending_requests)

    def find_requested_by(self, user_id: int) -> List[int]:
        """
        Ids of users holding a pending request from ``user_id``.

        Requests live only on the recipient, so this is a reverse scan. The
        LIKE is a coarse prefilter; each hit is confirmed by parsing.
        """
        rows = (
            self.db.query(User.id, User.pending_requests)
            .filter(User.id != user_id, User.pending_requests.like(f"%{user_id}%"))
            .all()
        )
        found = []
        for uid, raw in rows:
            entries = (parse_pending(e) for e in load_json_list(raw))
            if any(p is not None and p.from_id == user_id for p in entries):
                found.append(uid)
        return found

    def list_candidates(self, exclude: Iterable[int], limit: int) -> List[User]:
        query = self.db.query(User)
        exclude = set(exclude)
        if exclude:
            query = query.filter(User.id.notin_(exclude))
        return query.order_by(User.id).limit(limit).all()

    # --- writes ---

    def add(self, user: User) -> User:
        self.db.add(user)
        return user

    def write_state(self, user: User, state: RelationshipState) -> bool:
        """Copy a relationship state onto the row; returns True if anything changed."""
        changed = False
        friends = state.friend_records()
        if self.friend_ids(user) != friends:
            user.friends = json.dumps(friends)
            changed = True
        pending = state.pending_records()
        if self.pending_entries(user) != pending:
            user.pending_requests = json.dumps(pending)
            changed = True
        return changed

    def touch(self, user: User) -> None:
        """Force an UPDATE of the row so the commit checks (and bumps) its version."""
        flag_modified(user, "pending_requests")
