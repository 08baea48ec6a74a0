# tests/conftest.py
import json
import os

# must be set before app.core.config is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.base_class import Base
from app.db.session import get_db
from app.main import app
from app.models.user import User
from app.services.relationship_service import RelationshipService
from app.services.user_store import UserStore


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return UserStore(db)


@pytest.fixture
def relationships(store):
    return RelationshipService(store)


@pytest.fixture
def make_user(db):
    """Insert a user; friends/pending are stored exactly as given."""
    def _make(name, friends=None, pending=None):
        user = User(
            name=name,
            email=f"{name.lower()}@example.com",
            avatar=f"/avatars/{name.lower()}.png",
            bio="",
            friends=json.dumps(friends or []),
            pending_requests=json.dumps(pending or []),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def stored(db):
    """Read a user's relationship columns fresh from the database."""
    def _stored(user_id):
        db.expire_all()
        user = db.get(User, user_id)
        return json.loads(user.friends), json.loads(user.pending_requests)
    return _stored


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _auth(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return _auth
