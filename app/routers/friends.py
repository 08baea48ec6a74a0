# app/routers/friends.py

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.common.deps import (
    get_current_user,
    get_discovery_service,
    get_friends_query_service,
    get_relationship_service,
)
from app.models.relationship import DiscoverResult, FriendsAndPending
from app.models.user import User
from app.services.discovery_service import DiscoveryService
from app.services.friends_query import FriendsQueryService
from app.services.relationship_service import RelationshipService

router = APIRouter()

# Failures raise RelationshipError subclasses; app.main maps them to responses.


@router.get("", response_model=FriendsAndPending)
def get_friends_and_pending(
    current_user: User = Depends(get_current_user),
    query: FriendsQueryService = Depends(get_friends_query_service),
):
    return query.list_friends_and_pending(current_user.id)


@router.get("/discover", response_model=DiscoverResult)
def discover_users(
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    discovery: DiscoveryService = Depends(get_discovery_service),
):
    return DiscoverResult(users=discovery.discover(current_user.id, limit))


@router.post("/request/{user_id}")
def send_friend_request(
    user_id: int,
    current_user: User = Depends(get_current_user),
    relationships: RelationshipService = Depends(get_relationship_service),
):
    relationships.send_request(current_user.id, user_id)
    return {"message": "Friend request sent successfully"}


@router.post("/accept/{user_id}")
def accept_friend_request(
    user_id: int,
    current_user: User = Depends(get_current_user),
    relationships: RelationshipService = Depends(get_relationship_service),
):
    relationships.accept_request(current_user.id, user_id)
    return {"message": "Friend request accepted"}


@router.post("/reject/{user_id}")
def reject_friend_request(
    user_id: int,
    current_user: User = Depends(get_current_user),
    relationships: RelationshipService = Depends(get_relationship_service),
):
    relationships.reject_request(current_user.id, user_id)
    return {"message": "Friend request rejected"}


@router.delete("/remove/{user_id}")
def remove_friend(
    user_id: int,
    current_user: User = Depends(get_current_user),
    relationships: RelationshipService = Depends(get_relationship_service),
):
    relationships.remove_friend(current_user.id, user_id)
    return {"message": "Friend removed successfully"}


# used by messaging: only friends may message each other
@router.get("/{user_id}/is-friend")
def check_friendship(
    user_id: int,
    current_user: User = Depends(get_current_user),
    relationships: RelationshipService = Depends(get_relationship_service),
):
    return {"isFriend": relationships.is_friend(current_user.id, user_id)}
