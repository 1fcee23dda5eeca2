import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import (
    EmailAlreadyRegistered,
    EmailRequired,
    InternalError,
    InvalidEmail,
    InvalidName,
    InvalidUserId,
    PasswordHashRequired,
)
from models import User

logger = logging.getLogger(__name__)


def _is_blank(value):
    return not isinstance(value, str) or value.strip() == ""


def get_user_by_email(db: Session, email: str):
    if _is_blank(email):
        raise InvalidEmail()
    return db.query(User).filter(User.email == email.strip()).first()


def get_user_by_id(db: Session, user_id: str):
    if _is_blank(user_id):
        raise InvalidUserId()
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, email: str, password_hash: str, name=None) -> User:
    if _is_blank(email):
        raise EmailRequired()
    if _is_blank(password_hash):
        raise PasswordHashRequired()
    if name is not None and not isinstance(name, str):
        raise InvalidName()

    email = email.strip()
    if db.query(User).filter(User.email == email).first():
        raise EmailAlreadyRegistered()

    user = User(email=email, name=name, password_hash=password_hash.strip())
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # lost a race with a concurrent registration of the same email
        db.rollback()
        raise EmailAlreadyRegistered()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not create user %s", email)
        raise InternalError("Could not create user")

    logger.info("Registered user %s", user.id)
    return user
