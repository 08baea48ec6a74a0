# app/common/deps.py

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_user_id
from app.db.session import get_db
from app.models.user import User
from app.services.discovery_service import DiscoveryService
from app.services.friends_query import FriendsQueryService
from app.services.relationship_service import RelationshipService
from app.services.user_service import UserService
from app.services.user_store import UserStore

# tokens come from the identity service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return UserStore(db=db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db=db)


def get_relationship_service(store: UserStore = Depends(get_user_store)) -> RelationshipService:
    return RelationshipService(store)


def get_discovery_service(
    relationships: RelationshipService = Depends(get_relationship_service),
) -> DiscoveryService:
    return DiscoveryService(relationships)


def get_friends_query_service(store: UserStore = Depends(get_user_store)) -> FriendsQueryService:
    return FriendsQueryService(store)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_user_id(token)
    if user_id is None:
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user
