# app/services/discovery_service.py

from typing import List, Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.models.user import Profile
from app.services.relationship_service import RelationshipService

logger = get_logger(__name__)


class DiscoveryService:
    """People the user has no friendship or pending request with, in either direction."""

    def __init__(
        self,
        relationships: RelationshipService,
        page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
    ):
        self.relationships = relationships
        self.store = relationships.store
        self.page_size = settings.DISCOVER_PAGE_SIZE if page_size is None else page_size
        self.max_page_size = settings.DISCOVER_MAX_PAGE_SIZE if max_page_size is None else max_page_size

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            return self.page_size
        return min(limit, self.max_page_size)

    def excluded_ids(self, user_id: int) -> set:
        # every stored friend counts, one-sided entries included
        state = self.relationships.read_state(user_id)
        outbound = self.relationships.sent_request_targets(user_id)
        return {user_id, *state.friends, *state.requester_ids(), *outbound}

    def discover(self, user_id: int, limit: Optional[int] = None) -> List[Profile]:
        exclude = self.excluded_ids(user_id)
        with self.store.guard():
            users = self.store.list_candidates(exclude, self.clamp_limit(limit))
            logger.debug("discover %s: %d excluded, %d found", user_id, len(exclude), len(users))
            return [Profile.model_validate(u) for u in users]
