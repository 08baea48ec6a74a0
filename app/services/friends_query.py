# app/services/friends_query.py

from typing import Dict, List

from sqlalchemy.orm.exc import StaleDataError

from app.core.logging import get_logger
from app.models.relationship import FriendsAndPending, RelationshipState
from app.models.user import Profile, User
from app.services.repair import repair_user
from app.services.user_store import UserStore

logger = get_logger(__name__)


class FriendsQueryService:
    """
    Read side: a user's friends and incoming requests as profiles.

    Repairs the user's record on read and saves the cleaned copy when
    repair dropped anything.
    """

    def __init__(self, store: UserStore):
        self.store = store

    def list_friends_and_pending(self, user_id: int) -> FriendsAndPending:
        with self.store.guard():
            me = self.store.require(user_id)
            state, report = repair_user(self.store, me)
            if report.changed:
                self._save_repair(me, state, report)

            # one lookup for friends and raw request references
            wanted = set(state.friends) | {p.from_id for p in state.pending if not p.is_resolved}
            users = self.store.get_many(wanted)

            return FriendsAndPending(
                friends=self._reciprocated_friends(state, users),
                pending=self._pending_profiles(state, users),
            )

    def _save_repair(self, me: User, state: RelationshipState, report) -> None:
        self.store.write_state(me, state)
        try:
            self.store.commit()
        except StaleDataError:
            # someone else wrote the row first; their write runs repair too
            self.store.rollback()
            logger.warning("repair of user %s lost a concurrent update, not saved", state.owner_id)
            return
        logger.info(
            "repaired user %s: dropped %d friend(s), %d request(s)",
            state.owner_id, report.dropped_friends, report.dropped_requests,
        )

    def _reciprocated_friends(self, state: RelationshipState, users: Dict[int, User]) -> List[Profile]:
        friends = []
        for friend_id in state.friends:
            user = users.get(friend_id)
            if user is not None and state.owner_id in self.store.member_ids(user):
                friends.append(Profile.model_validate(user))
        return friends

    def _pending_profiles(self, state: RelationshipState, users: Dict[int, User]) -> List[Profile]:
        pending = []
        for request in state.pending:
            if request.is_resolved:
                pending.append(request.from_)
                continue
            user = users.get(request.from_id)
            if user is not None:
                pending.append(Profile.model_validate(user))
        return pending
