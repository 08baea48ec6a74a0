# app/models/relationship.py

"""
Relationship documents stored on a ``User`` row.

``friends`` is a JSON list of user ids. ``pending_requests`` is a JSON list
of inbound requests, each ``{"from": <ref>, "status": "pending",
"createdAt": <iso>}``. Only pending requests are ever stored; accepting or
rejecting deletes the entry.

``from`` is a ``Reference``: either a raw user id or an embedded profile
object, because some writers store requests denormalized.

``RelationshipState`` is the cleaned, immutable view the services work on.
Every mutation returns a new state built with set operations, so applying
the same change twice gives the same result.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.user import Profile

PENDING = "pending"

Reference = Union[int, Profile]


def as_user_id(value: Any) -> Optional[int]:
    """A stored id as int, or None; numeric strings are accepted, bools are not."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def reference_id(ref: Reference) -> int:
    return ref.id if isinstance(ref, Profile) else ref


class PendingRequest(BaseModel):
    from_: Reference = Field(alias="from")
    status: Literal["pending"] = PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def from_id(self) -> int:
        return reference_id(self.from_)

    @property
    def sent_at(self) -> datetime:
        """``created_at`` as aware UTC, so entries from different writers compare."""
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at.astimezone(timezone.utc)

    @property
    def is_resolved(self) -> bool:
        # an embedded object only counts as resolved if it carries a name
        return isinstance(self.from_, Profile) and bool(self.from_.name)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def parse_pending(raw: Any) -> Optional[PendingRequest]:
    """Parse one stored entry, or None if it is not a usable pending request."""
    if not isinstance(raw, dict) or raw.get("from") is None:
        return None
    if isinstance(raw.get("from"), bool):
        return None
    try:
        return PendingRequest.model_validate(raw)
    except ValidationError:
        return None


@dataclass(frozen=True)
class RelationshipState:
    owner_id: int
    friends: Tuple[int, ...] = ()
    pending: Tuple[PendingRequest, ...] = ()

    def is_friend_of(self, user_id: int) -> bool:
        return user_id in self.friends

    def has_request_from(self, user_id: int) -> bool:
        return any(p.from_id == user_id for p in self.pending)

    def requester_ids(self) -> List[int]:
        return [p.from_id for p in self.pending]

    def with_friend(self, user_id: int) -> "RelationshipState":
        if user_id in self.friends:
            return self
        return replace(self, friends=self.friends + (user_id,))

    def without_friend(self, user_id: int) -> "RelationshipState":
        return replace(self, friends=tuple(f for f in self.friends if f != user_id))

    def with_request_from(self, user_id: int) -> "RelationshipState":
        if self.has_request_from(user_id):
            return self
        return replace(self, pending=self.pending + (PendingRequest(from_=user_id),))

    def without_requests_from(self, user_id: int) -> "RelationshipState":
        return replace(self, pending=tuple(p for p in self.pending if p.from_id != user_id))

    def friend_records(self) -> List[int]:
        return list(self.friends)

    def pending_records(self) -> List[dict]:
        return [p.to_record() for p in self.pending]


class FriendsAndPending(BaseModel):
    friends: List[Profile]
    pending: List[Profile]


class DiscoverResult(BaseModel):
    users: List[Profile]
