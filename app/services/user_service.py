# app/services/user_service.py

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.user import User, UserCreate, UserUpdate


class UserService:
    """Profile fields only; relationship fields are written by RelationshipService."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def list_users(self, limit: int = 20, offset: int = 0) -> List[User]:
        return self.db.query(User).order_by(User.id).offset(offset).limit(limit).all()

    def create_user(self, user_in: UserCreate) -> User:
        db_user = User(**user_in.model_dump())
        self.db.add(db_user)
        self.db.commit()
        self.db.refresh(db_user)
        return db_user

    def update_profile(self, user: User, user_in: UserUpdate) -> User:
        # fields the client didn't send stay as they are
        update_data = user_in.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in update_data.items():
            setattr(user, key, value)

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
