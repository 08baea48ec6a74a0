# app/models/user.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    avatar = Column(String(255), default="")
    bio = Column(Text, default="")

    # relationship fields, JSON documents (see app.models.relationship)
    friends = Column(Text, default="[]")           # [user_id, ...]
    pending_requests = Column(Text, default="[]")  # [{"from", "status", "createdAt"}, ...]

    # bumped on every UPDATE; a mismatch raises StaleDataError at flush
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}


class Profile(BaseModel):
    """Lightweight public view of a user, as shown in friend and request lists."""
    id: int
    name: str = ""
    email: Optional[str] = None
    avatar: Optional[str] = ""
    bio: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    name: str
    email: str
    avatar: str = ""
    bio: str = ""


class UserUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
