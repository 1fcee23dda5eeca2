"""Seed a demo admin account and a few posts.

Usage:
    python seed.py

Safe to run repeatedly: existing rows are left alone.
"""
import logging
import os

from sqlalchemy.orm import Session

from database import SessionLocal, init_db
from models import Post, User
import posts
import users

ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")

# the admin cannot sign in until a real hash replaces this
PLACEHOLDER_HASH = "__replace_me__"

DEMO_POSTS = (
    ("First test post from Admin", "This is a demo post to get you started.", True),
    ("Second test post from Admin", "This is a second demo post to get you started.", True),
    ("Third test post from Admin", "This is a third demo post to get you started.", False),
)

logger = logging.getLogger(__name__)


def seed(db: Session) -> User:
    admin = users.get_user_by_email(db, ADMIN_EMAIL)
    if not admin:
        admin = users.create_user(db, email=ADMIN_EMAIL, password_hash=PLACEHOLDER_HASH, name="Admin")

    for title, content, published in DEMO_POSTS:
        existing = (
            db.query(Post)
            .filter(Post.author_id == admin.id, Post.title == title)
            .first()
        )
        if existing:
            continue
        posts.create_post(db, title=title, content=content, author_id=admin.id, published=published)

    return admin


def main():
    logging.basicConfig(level=logging.INFO)
    init_db()
    db = SessionLocal()
    try:
        seed(db)
    finally:
        db.close()
    logger.info("Seed complete")


if __name__ == "__main__":
    main()
