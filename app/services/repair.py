# app/services/repair.py

"""
Consistency repair for a user's relationship documents.

Writes to the two sides of a relationship are not one atomic step for
every backend, and clients retry, so stored lists can hold duplicates,
self-references or ids of deleted users. Everything that reads
``friends`` or ``pending_requests`` goes through ``repair_record`` first.

Repair never raises for bad data: broken entries are dropped and the
report says how many. Running it on its own output changes nothing.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, Iterable, Mapping, Optional, Tuple

from app.models.relationship import PendingRequest, RelationshipState, as_user_id, parse_pending
from app.models.user import User
from app.services.user_store import UserStore


@dataclass
class RepairReport:
    dropped_friends: int = 0
    dropped_requests: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.dropped_friends or self.dropped_requests)


def repair_friends(owner_id: int, raw: Iterable[Any], known_ids: Collection[int]) -> Tuple[int, ...]:
    """Keep first occurrence of every existing, non-self user id."""
    kept = []
    for value in raw:
        user_id = as_user_id(value)
        if user_id is None or user_id == owner_id or user_id in kept:
            continue
        if user_id not in known_ids:
            continue
        kept.append(user_id)
    return tuple(kept)


def repair_pending(
    owner_id: int,
    raw: Iterable[Any],
    friends: Collection[int],
    known_ids: Collection[int],
    crossed: Optional[Mapping[int, datetime]] = None,
) -> Tuple[PendingRequest, ...]:
    """
    Keep one pending request per requester.

    Dropped: unparseable entries, non-pending statuses, requests from the
    owner, from unknown users, from existing friends, and repeats of a
    requester already kept (the oldest entry wins).

    ``crossed`` maps a requester to the time the owner's own request to
    them was sent. Of two requests crossing between the same pair only the
    older survives; on a tie the one sent by the lower id does. Each side
    applies the same rule, so exactly one of the pair is dropped.
    """
    crossed = crossed or {}
    kept = []
    seen = set()
    for entry in raw:
        request = parse_pending(entry)
        if request is None:
            continue
        from_id = request.from_id
        if from_id == owner_id or from_id in seen or from_id in friends:
            continue
        if from_id not in known_ids:
            continue
        if from_id in crossed and (request.sent_at, from_id) > (_as_utc(crossed[from_id]), owner_id):
            continue
        seen.add(from_id)
        kept.append(request)
    return tuple(kept)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def outbound_requests(owner_id: int, requesters: Mapping[int, Iterable[Any]]) -> Dict[int, datetime]:
    """For each requester whose own pending list holds a request from the owner, when it was sent."""
    sent = {}
    for requester_id, raw_pending in requesters.items():
        for entry in raw_pending:
            request = parse_pending(entry)
            if request is not None and request.from_id == owner_id:
                sent[requester_id] = min(request.sent_at, sent.get(requester_id, request.sent_at))
    return sent


def referenced_ids(raw_friends: Iterable[Any], raw_pending: Iterable[Any]) -> set:
    ids = {uid for uid in (as_user_id(v) for v in raw_friends) if uid is not None}
    for entry in raw_pending:
        request = parse_pending(entry)
        if request is not None:
            ids.add(request.from_id)
    return ids


def requester_ids(raw_pending: Iterable[Any]) -> set:
    return {r.from_id for r in map(parse_pending, raw_pending) if r is not None}


def repair_record(
    owner_id: int,
    raw_friends: list,
    raw_pending: list,
    known_ids: Collection[int],
    crossed: Optional[Mapping[int, datetime]] = None,
) -> Tuple[RelationshipState, RepairReport]:
    friends = repair_friends(owner_id, raw_friends, known_ids)
    pending = repair_pending(owner_id, raw_pending, friends, known_ids, crossed)
    report = RepairReport(
        dropped_friends=len(raw_friends) - len(friends),
        dropped_requests=len(raw_pending) - len(pending),
    )
    return RelationshipState(owner_id=owner_id, friends=friends, pending=pending), report


def repair_user(store: UserStore, user: User) -> Tuple[RelationshipState, RepairReport]:
    """
    Repair a stored user. Referenced ids are checked against the store in
    one query. Requesters are then loaded in a second one, so that a
    request crossing one the user sent them can be reconciled.
    """
    raw_friends = store.friend_ids(user)
    raw_pending = store.pending_entries(user)
    known_ids = store.existing_ids(referenced_ids(raw_friends, raw_pending))
    requesters = store.get_many(requester_ids(raw_pending) & known_ids)
    # a requester who lists the user as a friend drops the user's request on their own repair
    crossed = outbound_requests(user.id, {
        uid: store.pending_entries(u)
        for uid, u in requesters.items()
        if user.id not in store.member_ids(u)
    })
    return repair_record(user.id, raw_friends, raw_pending, known_ids, crossed)
