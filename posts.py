"""Post listing and ownership-gated mutation.

Listing counts and fetches with the same filter predicate but in two
separate store calls, so under concurrent writes ``total`` may disagree with
``items``. Callers treat ``total``/``total_pages`` as advisory.

Mutations check existence before ownership: a non-owner touching a missing
post sees ``PostNotFound``, never ``NotAuthorized``. The check and the write
are not atomic either; concurrent owner updates are last-write-wins.
"""
import logging
import math
import numbers
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import (
    AuthorNotFound,
    InternalError,
    InvalidAuthorId,
    InvalidContent,
    InvalidId,
    InvalidLimit,
    InvalidPage,
    InvalidPublishedFlag,
    InvalidTitle,
    InvalidUserId,
    NoFieldsToUpdate,
    NotAuthorized,
    PostNotFound,
)
from models import Post, User, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# largest OFFSET a 64-bit store integer can hold
MAX_OFFSET = 2 ** 63 - 1
DEFAULT_PAGE = 1


@dataclass
class PageWindow:
    items: List[Post]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool


def _is_number(value):
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_blank(value):
    return not isinstance(value, str) or value.strip() == ""


def _filter_conditions(author_id, published_only):
    conditions = []
    if author_id is not None:
        if _is_blank(author_id):
            raise InvalidAuthorId()
        conditions.append(Post.author_id == author_id)
    if published_only:
        conditions.append(Post.published.is_(True))
    return conditions


def _count(db, conditions):
    return db.query(func.count(Post.id)).filter(*conditions).scalar() or 0


def _fetch(db, conditions, offset, limit):
    return (
        db.query(Post)
        .filter(*conditions)
        # id breaks ties between posts created in the same clock tick
        .order_by(Post.created_at.desc(), Post.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def list_posts(
    db: Session,
    author_id: Optional[str] = None,
    published_only: Optional[bool] = None,
    limit=DEFAULT_LIMIT,
    page=DEFAULT_PAGE,
) -> PageWindow:
    if limit is None:
        limit = DEFAULT_LIMIT
    if page is None:
        page = DEFAULT_PAGE

    if not _is_number(limit):
        raise InvalidLimit()
    limit = max(1, min(MAX_LIMIT, math.floor(limit)))
    if not _is_number(page):
        raise InvalidPage()
    page = max(1, math.floor(page))

    conditions = _filter_conditions(author_id, published_only)

    total = _count(db, conditions)
    offset = (page - 1) * limit
    if offset + limit > MAX_OFFSET:
        items = []
    else:
        items = _fetch(db, conditions, offset, limit)

    total_pages = max(1, math.ceil(total / limit))
    return PageWindow(
        items=items,
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
    )


def get_post(db: Session, post_id: str) -> Optional[Post]:
    if _is_blank(post_id):
        raise InvalidId()
    return db.query(Post).filter(Post.id == post_id).first()


def create_post(db: Session, title, content, author_id, published=None) -> Post:
    if _is_blank(title):
        raise InvalidTitle("Title is required")
    if _is_blank(content):
        raise InvalidContent("Content is required")
    if _is_blank(author_id):
        raise InvalidAuthorId("Author id is required")

    author = db.query(User).filter(User.id == author_id).first()
    if not author:
        raise AuthorNotFound()

    if published is not None and not isinstance(published, bool):
        raise InvalidPublishedFlag()

    now = utcnow()
    post = Post(
        title=title,
        content=content,
        author_id=author_id,
        published=bool(published),
        created_at=now,
        updated_at=now,
    )
    db.add(post)
    _commit(db, "Could not create post")
    db.refresh(post)

    logger.info("Post %s created by %s (published=%s)", post.id, author_id, post.published)
    return post


def _owned_post(db, post_id, user_id, action):
    if _is_blank(post_id):
        raise InvalidId()
    if _is_blank(user_id):
        raise InvalidUserId()

    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise PostNotFound()
    if post.author_id != user_id:
        logger.warning("User %s tried to %s post %s owned by %s", user_id, action, post_id, post.author_id)
        raise NotAuthorized(f"Not authorized to {action} this post")
    return post


def _validated_patch(patch):
    changes = {}
    if "title" in patch:
        if _is_blank(patch["title"]):
            raise InvalidTitle()
        changes["title"] = patch["title"]
    if "content" in patch:
        if _is_blank(patch["content"]):
            raise InvalidContent()
        changes["content"] = patch["content"]
    if "published" in patch:
        if not isinstance(patch["published"], bool):
            raise InvalidPublishedFlag()
        changes["published"] = patch["published"]
    if not changes:
        raise NoFieldsToUpdate()
    return changes


def _bumped(previous):
    now = utcnow()
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


def update_post(db: Session, post_id: str, patch: Mapping, user_id: str) -> Post:
    post = _owned_post(db, post_id, user_id, "modify")
    changes = _validated_patch(patch or {})

    for field, value in changes.items():
        setattr(post, field, value)
    post.updated_at = _bumped(post.updated_at)
    _commit(db, "Could not update post")
    db.refresh(post)

    logger.info("Post %s updated by %s (%s)", post.id, user_id, ", ".join(sorted(changes)))
    return post


def delete_post(db: Session, post_id: str, user_id: str) -> None:
    post = _owned_post(db, post_id, user_id, "delete")
    db.delete(post)
    _commit(db, "Could not delete post")
    logger.info("Post %s deleted by %s", post_id, user_id)


def _commit(db, failure_message):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(failure_message)
        raise InternalError(failure_message)
