import os

# must be set before database.py builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

import auth
import users
from database import Base, SessionLocal, engine
from models import Post

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture(autouse=True)
def reset_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


def _make_user(db, email, password="secret123", name=None):
    return users.create_user(db, email=email, password_hash=auth.hash_password(password), name=name)


@pytest.fixture
def alice(db):
    return _make_user(db, "alice@example.com", name="Alice")


@pytest.fixture
def bob(db):
    return _make_user(db, "bob@example.com", name="Bob")


@pytest.fixture
def alice_headers(alice):
    return {"Authorization": f"Bearer {auth.create_access_token({'sub': alice.id})}"}


@pytest.fixture
def bob_headers(bob):
    return {"Authorization": f"Bearer {auth.create_access_token({'sub': bob.id})}"}


@pytest.fixture
def make_post(db):
    """Insert a post directly with a controlled creation time."""
    def _make(author, title="Title", content="Content", published=False, minutes=0, post_id=None):
        created = BASE_TIME + timedelta(minutes=minutes)
        post = Post(
            title=title,
            content=content,
            author_id=author.id,
            published=published,
            created_at=created,
            updated_at=created,
        )
        if post_id is not None:
            post.id = post_id
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make
