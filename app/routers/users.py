# app/routers/users.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from app.common.deps import get_current_user, get_user_service
from app.models.user import Profile, User, UserCreate, UserUpdate
from app.services.user_service import UserService

router = APIRouter()


@router.post("", response_model=Profile, status_code=201)
def create_user(user_in: UserCreate, users: UserService = Depends(get_user_service)):
    if users.get_by_email(user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    return users.create_user(user_in)


@router.get("", response_model=List[Profile])
def list_users(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    users: UserService = Depends(get_user_service),
):
    return users.list_users(limit=limit, offset=offset)


@router.put("/profile", response_model=Profile)
def update_profile(
    user_in: UserUpdate,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return users.update_profile(current_user, user_in)


@router.get("/{user_id}", response_model=Profile)
def get_user(user_id: int, users: UserService = Depends(get_user_service)):
    user = users.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
