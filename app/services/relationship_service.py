# app/services/relationship_service.py

"""
Friend request / friendship state machine.

The only writer of ``friends`` and ``pending_requests``. Requests are held
by the recipient only. Every mutation is expressed as set operations on a
repaired ``RelationshipState`` (add-to-set, remove-from-set, filter), so a
retried or repeated call converges instead of corrupting either side.

Both rows touched by an operation are written in one commit, guarded by
the row ``version``. If another writer got there first the whole
operation is re-read and re-applied, up to ``max_retries`` times.
"""

from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm.exc import StaleDataError

from app.common.errors import (
    AlreadyFriends,
    ConflictRetryExhausted,
    DuplicateRequest,
    InvalidTarget,
    RequestNotFound,
    UserNotFound,
)
from app.core.config import settings
from app.core.logging import get_logger
from app.models.relationship import RelationshipState
from app.models.user import User
from app.services.repair import repair_user
from app.services.user_store import UserStore

logger = get_logger(__name__)


class RelationshipService:

    def __init__(self, store: UserStore, max_retries: Optional[int] = None):
        self.store = store
        if max_retries is None:
            max_retries = settings.RELATIONSHIP_MAX_RETRIES
        self.max_retries = max_retries

    # --- public operations ---

    def send_request(self, self_id: int, other_id: int) -> None:
        self._run("send", self._send, self_id, other_id)

    def accept_request(self, self_id: int, other_id: int) -> None:
        self._run("accept", self._accept, self_id, other_id)

    def reject_request(self, self_id: int, other_id: int) -> None:
        self._run("reject", self._reject, self_id, other_id)

    def remove_friend(self, self_id: int, other_id: int) -> None:
        self._run("remove", self._remove, self_id, other_id)

    def is_friend(self, a_id: int, b_id: int) -> bool:
        """Both sides must list each other; a one-sided membership is not a friendship."""
        if a_id == b_id:
            return False
        with self.store.guard():
            users = self.store.get_many([a_id, b_id])
            if len(users) != 2:
                return False
            return (
                b_id in self.store.member_ids(users[a_id])
                and a_id in self.store.member_ids(users[b_id])
            )

    # --- read surface for discovery ---

    def read_state(self, user_id: int) -> RelationshipState:
        with self.store.guard():
            state, _ = repair_user(self.store, self.store.require(user_id))
            return state

    def sent_request_targets(self, user_id: int) -> List[int]:
        with self.store.guard():
            return self.store.find_requested_by(user_id)

    # --- internals ---

    def _run(self, op: str, fn: Callable[[int, int], None], self_id: int, other_id: int) -> None:
        # a count below one still makes a single attempt
        attempts = max(self.max_retries, 1)
        for attempt in range(1, attempts + 1):
            try:
                with self.store.guard():
                    fn(self_id, other_id)
                    self.store.commit()
            except StaleDataError:
                logger.warning(
                    "%s %s -> %s: concurrent update, retry %d/%d",
                    op, self_id, other_id, attempt, attempts,
                )
                continue
            logger.info("%s %s -> %s: ok", op, self_id, other_id)
            return
        raise ConflictRetryExhausted()

    def _load_pair(self, self_id: int, other_id: int) -> Tuple[User, User, RelationshipState, RelationshipState]:
        me = self.store.require(self_id)
        other = self.store.require(other_id)
        my_state, _ = repair_user(self.store, me)
        their_state, _ = repair_user(self.store, other)
        return me, other, my_state, their_state

    def _write_pair(self, me: User, my_state: RelationshipState, other: User, their_state: RelationshipState) -> None:
        # both rows go out in the UPDATE so the commit checks both versions,
        # even when one side has nothing to change
        for user, state in ((me, my_state), (other, their_state)):
            self.store.write_state(user, state)
            self.store.touch(user)

    def _send(self, self_id: int, other_id: int) -> None:
        if self_id == other_id:
            raise InvalidTarget("Cannot send friend request to yourself")
        me = self.store.require(self_id)
        other = self.store.get(other_id)
        if other is None:
            raise InvalidTarget("User not found")
        my_state, _ = repair_user(self.store, me)
        their_state, _ = repair_user(self.store, other)

        if my_state.is_friend_of(other_id) and their_state.is_friend_of(self_id):
            raise AlreadyFriends()
        if their_state.has_request_from(self_id):
            raise DuplicateRequest()
        if my_state.has_request_from(other_id):
            raise DuplicateRequest("This user has already sent you a friend request")

        # a one-sided membership is a leftover of an interrupted write; drop it
        my_state = my_state.without_friend(other_id)
        their_state = their_state.without_friend(self_id).with_request_from(self_id)

        self._write_pair(me, my_state, other, their_state)

    def _accept(self, self_id: int, other_id: int) -> None:
        me = self.store.require(self_id)
        my_state, _ = repair_user(self.store, me)

        if not my_state.has_request_from(other_id):
            other = self.store.get(other_id)
            if other is None or not my_state.is_friend_of(other_id):
                raise RequestNotFound()
            their_state, _ = repair_user(self.store, other)
            if their_state.is_friend_of(self_id):
                # already accepted
                raise RequestNotFound()
            # our side was accepted but theirs never written: finish it
            logger.info("accept %s -> %s: completing half-applied accept", self_id, other_id)
            self._write_pair(me, my_state, other, their_state.with_friend(self_id).without_requests_from(self_id))
            return

        other = self.store.get(other_id)
        if other is None:
            raise UserNotFound()
        their_state, _ = repair_user(self.store, other)

        my_state = my_state.with_friend(other_id).without_requests_from(other_id)
        their_state = their_state.with_friend(self_id).without_requests_from(self_id)

        self._write_pair(me, my_state, other, their_state)

    def _reject(self, self_id: int, other_id: int) -> None:
        me = self.store.require(self_id)
        my_state, _ = repair_user(self.store, me)
        if not my_state.has_request_from(other_id):
            raise RequestNotFound()
        self.store.write_state(me, my_state.without_requests_from(other_id))

    def _remove(self, self_id: int, other_id: int) -> None:
        me, other, my_state, their_state = self._load_pair(self_id, other_id)

        my_state = my_state.without_friend(other_id).without_requests_from(other_id)
        their_state = their_state.without_friend(self_id).without_requests_from(self_id)

        self._write_pair(me, my_state, other, their_state)
